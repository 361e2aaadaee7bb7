"""PTY session management for individual terminal instances.

This module manages a single shell hosted on a pseudo-terminal, handling:
- Process lifecycle (spawn, kill)
- Bidirectional I/O (read output, write input)
- Terminal sizing (TIOCSWINSZ ioctl)
- Event delivery ("output" chunks, one "exit")
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from ..exception import ChannelIOError, InternalError
from ..process import PtyProcess

logger = logging.getLogger(__name__)

OUTPUT = "output"
EXIT = "exit"

READ_POLL_INTERVAL = 0.1
STOP_JOIN_TIMEOUT = 2.0


@dataclass(frozen=True)
class TerminalEvent:
    """One event from a terminal's reader loop

    Attributes:
        terminal_id: Terminal the event belongs to
        kind: "output" or "exit"
        data: Raw output bytes (empty for "exit")
    """
    terminal_id: str
    kind: str
    data: bytes = b""


class PTYSession:
    """
    Manages a single shell process for one terminal.

    Architecture:
    - Spawn and writes run in executor threads (blocking syscalls)
    - Output is read by one dedicated thread per session
    - Events are handed to ``event_broker.push_from_worker()``, which
      must be safe to call from that thread

    Lifecycle:
    1. start() - spawn shell, start reader thread
    2. write() / resize() - forward input and size changes
    3. stop() - kill shell, join reader, close the PTY

    The "exit" event is emitted exactly once per session, whether the
    shell exited by itself, was killed out-of-band, or stop() was called.

    Attributes:
        terminal_id: Caller-supplied terminal identifier
        working_dir: Working directory for the shell
        shell: Shell argv
        process: PTY child handle (None until started)
    """

    def __init__(
        self,
        terminal_id: str,
        working_dir: Path,
        event_broker,
        shell: List[str],
        rows: int = 24,
        cols: int = 80,
        on_exit: Optional[Callable[['PTYSession'], None]] = None,
    ):
        self.terminal_id = terminal_id
        self.working_dir = working_dir
        self.event_broker = event_broker
        self.shell = shell
        self.rows = rows
        self.cols = cols
        self.process: Optional[PtyProcess] = None

        self._on_exit = on_exit
        self._reader: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._exit_lock = threading.Lock()
        self._exit_sent = False

        logger.debug(f"PTYSession initialized: terminal_id={terminal_id}, path={working_dir}")

    @property
    def running(self) -> bool:
        return self.process is not None and not self._exit_sent

    @property
    def exited(self) -> bool:
        return self._exit_sent

    async def start(self) -> None:
        """
        Spawn the shell and start the reader thread.

        Raises:
            InternalError: If already started
            SpawnError: If PTY allocation or spawn fails
        """
        if self.process is not None:
            raise InternalError(f"PTY already started: terminal_id={self.terminal_id}")

        logger.info(f"[PTYSession] Starting: terminal_id={self.terminal_id}, shell={self.shell}")

        loop = asyncio.get_running_loop()
        self.process = await loop.run_in_executor(
            None, PtyProcess.spawn, self.shell, self.working_dir, self.rows, self.cols
        )

        self._reader = threading.Thread(
            target=self._read_output,
            name=f"pty-reader-{self.terminal_id}",
            daemon=True,
        )
        self._reader.start()

        logger.info(f"[PTYSession] Started: terminal_id={self.terminal_id}, pid={self.process.pid}")

    def _read_output(self) -> None:
        """
        Reader thread: forward output chunks until end of stream.

        End of stream (shell exited), a read error, or stop() all end the
        loop; the exit event is sent on the way out.
        """
        logger.info(f"[PTYSession] Read thread started: terminal_id={self.terminal_id}")

        try:
            while not self._stopping.is_set():
                chunk = self.process.read(READ_POLL_INTERVAL)
                if chunk is None:
                    continue
                if not chunk:
                    break
                self.event_broker.push_from_worker(
                    self.terminal_id, TerminalEvent(self.terminal_id, OUTPUT, chunk)
                )

        except (ChannelIOError, OSError, ValueError) as e:
            logger.info(f"[PTYSession] Read error: terminal_id={self.terminal_id}: {e}")

        finally:
            self._send_exit()
            logger.info(f"[PTYSession] Read thread ended: terminal_id={self.terminal_id}")

    def _send_exit(self) -> None:
        with self._exit_lock:
            if self._exit_sent:
                return
            self._exit_sent = True

        self.event_broker.push_from_worker(
            self.terminal_id, TerminalEvent(self.terminal_id, EXIT)
        )

        if self._on_exit is not None:
            self._on_exit(self)

    async def write(self, data: bytes) -> None:
        """
        Write user input to the PTY.

        Raises:
            ChannelIOError: If the shell is not running or the write fails
        """
        if not self.running:
            raise ChannelIOError(f"PTY not running: terminal_id={self.terminal_id}")

        logger.debug(
            f"[PTYSession] Writing input: terminal_id={self.terminal_id}, "
            f"data_length={len(data)}"
        )

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.process.write, data)

    async def resize(self, cols: int, rows: int) -> None:
        """
        Resize terminal window.

        Raises:
            ChannelIOError: If the shell is not running or the ioctl fails
        """
        if not self.running:
            raise ChannelIOError(f"PTY not running: terminal_id={self.terminal_id}")

        logger.info(
            f"[PTYSession] Resizing: terminal_id={self.terminal_id}, "
            f"cols={cols}, rows={rows}"
        )

        self.cols, self.rows = cols, rows
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.process.resize, cols, rows)

    async def stop(self) -> None:
        """
        Kill the shell and release the PTY.

        Safe to call multiple times and on a shell that already exited.
        """
        if self.process is None:
            return

        logger.info(f"[PTYSession] Stopping: terminal_id={self.terminal_id}")

        self._stopping.set()
        self.process.kill()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._finish)

        logger.info(f"[PTYSession] Stopped: terminal_id={self.terminal_id}")

    def _finish(self) -> None:
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=STOP_JOIN_TIMEOUT)

        if self.process.wait(timeout=STOP_JOIN_TIMEOUT) is None:
            logger.warning(f"[PTYSession] Shell did not exit: pid={self.process.pid}")

        self.process.close()
