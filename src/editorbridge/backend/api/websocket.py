"""WebSocket API for terminal event streams"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..exception import BridgeException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/terminals/{terminal_id}")
async def websocket_terminal_endpoint(websocket: WebSocket, terminal_id: str):
    """
    Event stream for one terminal.

    The terminal is started and stopped through the REST endpoints; this
    connection only carries its events and, optionally, its input.

    Server → Client Message Format:
    {"terminal_id": "t1", "type": "output", "data": "text"}
    {"terminal_id": "t1", "type": "exit"}

    Client → Server Message Format:
    {"type": "input", "data": "ls\\n"}
    {"type": "resize", "cols": 120, "rows": 40}

    Error Response Format:
    {"terminal_id": "t1", "type": "error", "code": "NOT_FOUND", "message": "..."}
    """
    runtime = websocket.app.state.runtime
    broker = runtime.terminal_broker
    manager = runtime.terminal_manager

    await websocket.accept()
    await broker.connect_terminal(terminal_id, websocket)

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                logger.info(f"Terminal {terminal_id} WebSocket disconnected normally")
                break
            except Exception as e:
                logger.error(f"Error receiving WebSocket message: {e}", exc_info=True)
                break

            message_type = data.get("type") if isinstance(data, dict) else None

            try:
                if message_type == "input":
                    await manager.write_terminal(terminal_id, data.get("data", ""))
                elif message_type == "resize":
                    await manager.resize_terminal(terminal_id, int(data["cols"]), int(data["rows"]))
                else:
                    logger.warning(f"Unknown message type for terminal {terminal_id}: {message_type}")
                    await websocket.send_json({
                        "terminal_id": terminal_id,
                        "type": "error",
                        "code": "VALIDATION_ERROR",
                        "message": f"Unknown message type: {message_type}"
                    })
            except BridgeException as e:
                await websocket.send_json({
                    "terminal_id": terminal_id,
                    "type": "error",
                    "code": e.code,
                    "message": e.message
                })
            except (KeyError, TypeError, ValueError) as e:
                await websocket.send_json({
                    "terminal_id": terminal_id,
                    "type": "error",
                    "code": "VALIDATION_ERROR",
                    "message": f"Invalid {message_type} message: {e}"
                })

    finally:
        await broker.disconnect_terminal(terminal_id, websocket)
        logger.info(f"Terminal {terminal_id} WebSocket connection closed")
