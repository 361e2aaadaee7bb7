"""FastAPI application factory and configuration"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .logging import setup_logging
from .exception import BridgeException
from .runtime import BridgeRuntime
from .schema.response import ErrorResponse
from .api import lsp_router, terminal_router, websocket_router

logger = logging.getLogger(__name__)


def create_app(instance_path: Optional[Path], config: dict) -> FastAPI:
    """Create and configure FastAPI application instance

    This is the application factory function that initializes logging,
    creates the FastAPI app with a lifespan owning the BridgeRuntime,
    configures middleware, registers exception handlers, and includes routers.

    Args:
        instance_path: Path to the instance directory (None skips file logging)
        config: Configuration dictionary loaded from config.toml

    Returns:
        Configured FastAPI application instance
    """
    if instance_path is not None:
        setup_logging(instance_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: start and stop the process bridge"""
        logger.info("Initializing BridgeRuntime...")
        runtime = BridgeRuntime(config)
        await runtime.start()
        app.state.runtime = runtime
        logger.info("BridgeRuntime initialized successfully")

        yield

        logger.info("Shutting down BridgeRuntime...")
        try:
            await runtime.stop()
        except Exception as e:
            logger.error(f"BridgeRuntime shutdown failed: {e}")

    app = FastAPI(
        title="editorbridge API",
        description="Terminal and language server bridge for a web-based code editor",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.instance_path = instance_path

    # ==================== CORS Configuration ====================

    cors_config = config.get('cors', {})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get('allow_origins', []),
        allow_credentials=cors_config.get('allow_credentials', True),
        allow_methods=cors_config.get('allow_methods', ["*"]),
        allow_headers=cors_config.get('allow_headers', ["*"]),
    )

    # ==================== Exception Handlers ====================

    @app.exception_handler(BridgeException)
    async def bridge_exception_handler(request: Request, exc: BridgeException) -> JSONResponse:
        """Handle all bridge exceptions

        All custom exceptions (SpawnError, NotFoundError, etc.) inherit from
        BridgeException. This handler returns a unified ErrorResponse.

        Returns:
            JSONResponse with ErrorResponse format (HTTP 200, success=false)
        """
        logger.info(f"Request failed: {request.url.path}: {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=200,  # Business errors return 200 with success=false
            content=ErrorResponse(
                message=exc.message,
                error={"code": exc.code}
            ).model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors

        Returns:
            JSONResponse with ErrorResponse format (HTTP 200, success=false)
        """
        return JSONResponse(
            status_code=200,
            content=ErrorResponse(
                message="Invalid input format",
                error={
                    "code": "VALIDATION_ERROR",
                    "details": jsonable_errors(exc)
                }
            ).model_dump()
        )

    # ==================== Router Registration ====================

    app.include_router(lsp_router, prefix="/api")
    app.include_router(terminal_router, prefix="/api")
    app.include_router(websocket_router, prefix="/api")

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation error details without non-serializable context objects"""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
