"""Dependency injection functions for FastAPI routes"""

from typing import Annotated

from fastapi import Depends, Request

from .runtime import BridgeRuntime


def get_runtime(request: Request) -> BridgeRuntime:
    """Get the BridgeRuntime created in the application lifespan

    Usage:
        @router.post("/example")
        async def example_route(runtime: RuntimeDep):
            await runtime.lsp_manager.stop_lsp(...)
    """
    return request.app.state.runtime


RuntimeDep = Annotated[BridgeRuntime, Depends(get_runtime)]
