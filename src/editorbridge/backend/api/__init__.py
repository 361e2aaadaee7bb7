"""
API package for REST and WebSocket endpoints.
"""

from .lsp import router as lsp_router
from .terminal import router as terminal_router
from .websocket import router as websocket_router

__all__ = [
    "lsp_router",
    "terminal_router",
    "websocket_router",
]
