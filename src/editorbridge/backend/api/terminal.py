"""Terminal API endpoints"""

import logging

from fastapi import APIRouter

from ..dep import RuntimeDep
from ..schema.response import SuccessResponse
from ..schema.terminal import (
    StartTerminalRequest,
    WriteTerminalRequest,
    ResizeTerminalRequest,
    TerminalOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/terminals", tags=["Terminals"])


@router.get("", response_model=SuccessResponse[list[TerminalOut]])
async def list_terminals(runtime: RuntimeDep):
    """List live terminal sessions"""
    terminals = [TerminalOut(terminal_id=tid) for tid in runtime.terminal_manager.list_terminals()]
    return SuccessResponse(data=terminals)


@router.post("/{terminal_id}/start", response_model=SuccessResponse[TerminalOut])
async def start_terminal(terminal_id: str, request: StartTerminalRequest, runtime: RuntimeDep):
    """Start a shell for a terminal id

    A running session with the same id is killed and replaced. Output produced
    before a client subscribes on /api/ws/terminals/{terminal_id} is buffered
    (newest events kept) and replayed when it connects.

    Raises:
        SpawnError: PTY allocation or shell spawn failed
    """
    await runtime.terminal_manager.start_terminal(terminal_id, request.working_dir)
    return SuccessResponse(data=TerminalOut(terminal_id=terminal_id))


@router.post("/{terminal_id}/write", response_model=SuccessResponse[None])
async def write_terminal(terminal_id: str, request: WriteTerminalRequest, runtime: RuntimeDep):
    """Forward input to a terminal

    Raises:
        NotFoundError: No session with this id
        ChannelIOError: Write failed
    """
    await runtime.terminal_manager.write_terminal(terminal_id, request.data)
    return SuccessResponse(data=None)


@router.post("/{terminal_id}/resize", response_model=SuccessResponse[None])
async def resize_terminal(terminal_id: str, request: ResizeTerminalRequest, runtime: RuntimeDep):
    """Resize a terminal

    Raises:
        NotFoundError: No session with this id
    """
    await runtime.terminal_manager.resize_terminal(terminal_id, request.cols, request.rows)
    return SuccessResponse(data=None)


@router.post("/{terminal_id}/stop", response_model=SuccessResponse[None])
async def stop_terminal(terminal_id: str, runtime: RuntimeDep):
    """Kill a terminal's shell and forget the session

    Raises:
        NotFoundError: No session with this id
    """
    await runtime.terminal_manager.stop_terminal(terminal_id)
    return SuccessResponse(data=None)
