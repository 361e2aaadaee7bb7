"""Language server API endpoints"""

import logging

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from ..dep import RuntimeDep
from ..schema.response import SuccessResponse
from ..schema.lsp import (
    StartLspRequest,
    DetectProjectRequest,
    StartLspOut,
    ProjectInfoOut,
    LspInstanceOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lsp", tags=["Language Servers"])


@router.post("/start", response_model=SuccessResponse[StartLspOut])
async def start_lsp(request: StartLspRequest, runtime: RuntimeDep):
    """Start a language server for a project

    Returns once the instance's WebSocket listener is accepting, so the
    front end may connect to ws://127.0.0.1:{port} right away.

    Raises:
        ConfigurationError: Unsupported language
        ValidationError: root_path is not a directory
        SpawnError: Binary missing or listener bind failed
    """
    logger.info(f"Starting LSP: language={request.language}, root_path={request.root_path}")

    lsp_id, port = await runtime.lsp_manager.start_lsp(request.language, request.root_path)
    return SuccessResponse(data=StartLspOut(lsp_id=lsp_id, port=port))


@router.post("/detect", response_model=SuccessResponse[ProjectInfoOut])
async def detect_project(request: DetectProjectRequest, runtime: RuntimeDep):
    """Find the project root and language for a path

    Raises:
        NotFoundError: Path does not exist
        ProjectUnknownError: No known manifest in any ancestor
    """
    info = await run_in_threadpool(runtime.detect_project, request.path)
    return SuccessResponse(data=ProjectInfoOut(project_type=info.project_type, root_path=info.root_path))


@router.get("/available/{language}", response_model=SuccessResponse[bool])
async def check_lsp_available(language: str, runtime: RuntimeDep):
    """Probe whether the language server binary is installed and healthy

    Raises:
        ConfigurationError: Unsupported language
    """
    available = await run_in_threadpool(runtime.probe_language_server, language)
    return SuccessResponse(data=available)


@router.get("", response_model=SuccessResponse[list[LspInstanceOut]])
async def list_lsp(runtime: RuntimeDep):
    """List running language server instances"""
    instances = [LspInstanceOut(**status) for status in runtime.lsp_manager.list_instances()]
    return SuccessResponse(data=instances)


@router.post("/{lsp_id}/stop", response_model=SuccessResponse[None])
async def stop_lsp(lsp_id: str, runtime: RuntimeDep):
    """Stop a language server instance

    Raises:
        NotFoundError: No instance with this id
    """
    await runtime.lsp_manager.stop_lsp(lsp_id)
    return SuccessResponse(data=None)
