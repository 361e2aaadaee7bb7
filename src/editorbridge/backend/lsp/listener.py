"""WebSocket listener on an OS-assigned loopback port.

Each language server instance owns one listener. The handshake is done
by the websockets library; a failed handshake is logged through this
module's logger and only that connection is dropped.
"""

import logging
from typing import Awaitable, Callable, Optional

from websockets.asyncio.server import Server, ServerConnection, serve

logger = logging.getLogger(__name__)

# LSP payloads (didOpen of a large file, semantic tokens) can be big
MAX_MESSAGE_SIZE = 64 * 1024 * 1024

ConnectionHandler = Callable[[ServerConnection], Awaitable[None]]


class TransportListener:
    """
    Accepts client connections and hands each duplex stream to ``handler``.

    Attributes:
        host: Bind address
        port: OS-assigned port (None until started)
    """

    def __init__(self, handler: ConnectionHandler, host: str = "127.0.0.1"):
        self.host = host
        self.port: Optional[int] = None
        self._handler = handler
        self._server: Optional[Server] = None

    async def start(self) -> int:
        """
        Bind an ephemeral port and start accepting.

        Returns only once the socket is listening, so a client can never
        connect before the caller has registered the instance.

        Returns:
            The bound port

        Raises:
            OSError: Bind failed
        """
        self._server = await serve(
            self._on_connection,
            self.host,
            0,
            max_size=MAX_MESSAGE_SIZE,
            logger=logger,
        )

        sock = next(iter(self._server.sockets))
        self.port = sock.getsockname()[1]

        logger.info(f"[TransportListener] Listening on {self.host}:{self.port}")
        return self.port

    async def _on_connection(self, connection: ServerConnection) -> None:
        logger.info(
            f"[TransportListener] Client connected: port={self.port}, "
            f"remote={connection.remote_address}"
        )
        try:
            await self._handler(connection)
        except Exception as e:
            logger.error(f"[TransportListener] Client handler failed: {e}", exc_info=True)
        finally:
            logger.info(
                f"[TransportListener] Client disconnected: port={self.port}, "
                f"remote={connection.remote_address}"
            )

    async def close(self) -> None:
        """Stop accepting and close every open connection."""
        if self._server is None:
            return

        server, self._server = self._server, None
        server.close()
        await server.wait_closed()

        logger.info(f"[TransportListener] Closed: port={self.port}")
