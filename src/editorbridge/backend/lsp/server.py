"""Stream bridge between one language server process and N WebSocket clients.

A language server speaks Content-Length framed JSON-RPC on stdio and only
tolerates a single writer and a single reader. This module gives every
connected client the illusion of its own duplex connection:

    client A ─┐                         ┌─> queue A ─> client A
    client B ─┼─> [stdin lock] stdin    │
    client C ─┘        ...     stdout ──┼─> queue B ─> client B
                               [stdout lock]
                                        └─> queue C ─> client C

stdin and stdout are guarded by two independent locks and no task ever
holds both, so an in-flight write can never block a read and vice versa.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Set

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from ..exception import ChannelIOError, ProtocolError, SpawnError
from ..process import PipedProcess
from .framing import encode_message, parse_content_length, read_body, read_header
from .language import LanguageServerSpec
from .listener import TransportListener

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5


class LanguageServerInstance:
    """
    One language server process and the clients connected to it.

    Lifecycle:
    1. start() - spawn process, bind listener, start stdout reader
    2. clients connect to ``port`` and exchange JSON-RPC bodies
    3. stop() - kill process, close listener and every client

    The instance is dead once its stdout reader ends (process exit or
    pipe error). It is never respawned; callers stop it and start a new one.

    Attributes:
        lsp_id: Opaque unique id
        spec: Language server table entry
        root_path: Project root, used as the child's working directory
        port: Listener port (None until started)
        process: Child process handle (None until started)
        alive: Whether stdin writes are still accepted
        started_at: Timestamp when start() completed
    """

    def __init__(
        self,
        lsp_id: str,
        spec: LanguageServerSpec,
        root_path: Path,
        host: str = "127.0.0.1",
    ):
        self.lsp_id = lsp_id
        self.spec = spec
        self.root_path = root_path
        self.port: Optional[int] = None
        self.process: Optional[PipedProcess] = None
        self.alive = False
        self.started_at: Optional[datetime] = None

        # One exclusive handle per direction
        self._stdin_lock = asyncio.Lock()
        self._stdout_lock = asyncio.Lock()

        # Outbound channel per connected client
        self._clients: Set[asyncio.Queue] = set()
        self._clients_lock = asyncio.Lock()

        self._listener = TransportListener(self._serve_client, host)
        self._reader_task: Optional[asyncio.Task] = None

    @property
    def language(self) -> str:
        return self.spec.language

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self) -> int:
        """
        Spawn the language server and start accepting clients.

        Returns:
            The listener port

        Raises:
            SpawnError: Process could not be started or listener could not bind.
                Nothing is left running when this is raised.
        """
        logger.info(
            f"[LanguageServerInstance] Starting {self.language} server: "
            f"lsp_id={self.lsp_id}, root={self.root_path}"
        )

        self.process = await PipedProcess.start(self.spec.command, self.spec.args, self.root_path)

        try:
            self.port = await self._listener.start()
        except OSError as e:
            logger.error(f"[LanguageServerInstance] Listener bind failed: {e}")
            self.process.kill()
            await self.process.wait()
            raise SpawnError(f"Failed to bind listener: {e}")

        self.alive = True
        self._reader_task = asyncio.create_task(
            self._read_stdout(), name=f"lsp-stdout-{self.lsp_id}"
        )
        self.started_at = datetime.now()

        logger.info(
            f"[LanguageServerInstance] Ready: lsp_id={self.lsp_id}, "
            f"port={self.port}, pid={self.process.pid}"
        )
        return self.port

    # ==================== Client -> Server ====================

    async def send_to_server(self, body: str) -> None:
        """
        Frame one JSON-RPC body and write it to the server's stdin.

        The stdin lock is held only for write + flush.

        Raises:
            ChannelIOError: Instance is dead or the pipe is broken
        """
        if not self.alive or self.process is None:
            raise ChannelIOError(f"Language server is not running: lsp_id={self.lsp_id}")

        frame = encode_message(body)

        async with self._stdin_lock:
            try:
                self.process.stdin.write(frame)
                await self.process.stdin.drain()
            except (ConnectionError, OSError) as e:
                self.alive = False
                raise ChannelIOError(f"Write to language server failed: {e}")

        logger.debug(
            f"[LanguageServerInstance] -> server: lsp_id={self.lsp_id}, "
            f"bytes={len(frame)}"
        )

    async def _serve_client(self, connection: ServerConnection) -> None:
        """Relay one client: inbound text frames to stdin, broadcast queue to socket."""
        queue: asyncio.Queue = asyncio.Queue()
        async with self._clients_lock:
            self._clients.add(queue)

        forward_task = asyncio.create_task(self._forward_to_client(connection, queue))

        try:
            async for message in connection:
                if not isinstance(message, str):
                    logger.debug(
                        f"[LanguageServerInstance] Ignoring binary frame: "
                        f"lsp_id={self.lsp_id}, bytes={len(message)}"
                    )
                    continue

                try:
                    await self.send_to_server(message)
                except ChannelIOError as e:
                    logger.warning(f"[LanguageServerInstance] {e.message}")
                    await connection.close(code=1011, reason="language server unavailable")
                    break

        except ConnectionClosed:
            pass

        finally:
            async with self._clients_lock:
                self._clients.discard(queue)

            forward_task.cancel()
            try:
                await forward_task
            except asyncio.CancelledError:
                pass

    # ==================== Server -> Clients ====================

    async def _forward_to_client(self, connection: ServerConnection, queue: asyncio.Queue) -> None:
        try:
            while True:
                body = await queue.get()
                await connection.send(body)
        except ConnectionClosed:
            logger.debug(f"[LanguageServerInstance] Client send failed, dropping: lsp_id={self.lsp_id}")
        finally:
            async with self._clients_lock:
                self._clients.discard(queue)

    async def _broadcast(self, body: str) -> None:
        async with self._clients_lock:
            for queue in self._clients:
                queue.put_nowait(body)
            count = len(self._clients)

        logger.debug(
            f"[LanguageServerInstance] <- server: lsp_id={self.lsp_id}, "
            f"bytes={len(body)}, clients={count}"
        )

    async def _read_stdout(self) -> None:
        """
        Decode framed messages from stdout and fan them out.

        The stdout lock is held per header read and per body read.
        Malformed frames are logged and dropped; end of stream or a pipe
        error ends the loop and marks the instance dead.
        """
        stdout = self.process.stdout
        logger.info(f"[LanguageServerInstance] Reader started: lsp_id={self.lsp_id}")

        try:
            while True:
                try:
                    async with self._stdout_lock:
                        header = await read_header(stdout)
                    length = parse_content_length(header)
                    async with self._stdout_lock:
                        body = await read_body(stdout, length)
                except ProtocolError as e:
                    logger.warning(
                        f"[LanguageServerInstance] Dropping malformed frame: "
                        f"lsp_id={self.lsp_id}: {e.message}"
                    )
                    continue

                await self._broadcast(body)

        except ChannelIOError as e:
            logger.info(f"[LanguageServerInstance] Reader ended: lsp_id={self.lsp_id}: {e.message}")
        except Exception as e:
            logger.error(f"[LanguageServerInstance] Reader failed: lsp_id={self.lsp_id}: {e}", exc_info=True)
        finally:
            self.alive = False

    # ==================== Teardown ====================

    async def stop(self) -> None:
        """
        Kill the process and close the listener and all clients.

        Safe to call on an instance whose process already exited.
        """
        logger.info(f"[LanguageServerInstance] Stopping: lsp_id={self.lsp_id}")
        self.alive = False

        if self.process is not None:
            self.process.kill()

        await self._listener.close()

        if self.process is not None:
            try:
                await asyncio.wait_for(self.process.wait(), timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(
                    f"[LanguageServerInstance] Process did not exit: "
                    f"lsp_id={self.lsp_id}, pid={self.process.pid}"
                )

            self.process.stdin.close()

        if self._reader_task is not None:
            # Grandchildren can keep stdout open after the server itself exits
            try:
                await asyncio.wait_for(self._reader_task, timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"[LanguageServerInstance] Reader did not finish: lsp_id={self.lsp_id}")

        logger.info(f"[LanguageServerInstance] Stopped: lsp_id={self.lsp_id}")

    def status(self) -> dict:
        """Snapshot of this instance (read-only)"""
        return {
            "lsp_id": self.lsp_id,
            "language": self.language,
            "root_path": str(self.root_path),
            "port": self.port,
            "pid": self.process.pid if self.process else None,
            "alive": self.alive,
            "clients": self.client_count,
            "started_at": self.started_at,
        }
