"""Terminal manager for coordinating all terminal sessions.

This module provides centralized management of PTY sessions, handling:
- Session lifecycle (creation, replacement, cleanup)
- Shell resolution
- Registry of live sessions keyed by terminal id
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..exception import NotFoundError
from ..process import resolve_default_shell
from .pty_session import PTYSession

logger = logging.getLogger(__name__)


class TerminalManager:
    """
    Manager for all terminal sessions.

    Architecture:
    - Runs in the main event loop
    - Maintains registry of live PTYSession instances
    - Sessions report their own exit from a reader thread; the entry is
      then removed on the main loop

    States per terminal id:
        absent --start--> running --(stop | shell exit)--> absent

    Starting an id that is already running kills the old session first
    (last start wins).

    Attributes:
        event_broker: Receives TerminalEvents via push_from_worker()
        terminals: Registry of live sessions (terminal_id -> PTYSession)
    """

    def __init__(
        self,
        event_broker,
        shell: Optional[str] = None,
        rows: int = 24,
        cols: int = 80,
    ):
        """
        Args:
            event_broker: Event sink with a thread-safe push_from_worker()
            shell: Explicit shell (None for the platform default)
            rows: Initial terminal height
            cols: Initial terminal width
        """
        self.event_broker = event_broker
        self.shell = shell
        self.rows = rows
        self.cols = cols
        self.terminals: Dict[str, PTYSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        logger.info("TerminalManager initialized")

    def _lock_for(self, terminal_id: str) -> asyncio.Lock:
        lock = self._locks.get(terminal_id)
        if lock is None:
            lock = self._locks[terminal_id] = asyncio.Lock()
        return lock

    async def start_terminal(self, terminal_id: str, working_dir: Optional[str] = None) -> None:
        """
        Start a terminal session.

        Steps:
        1. Kill and drop an existing session with the same id (kill errors ignored)
        2. Spawn the shell in a new PTY
        3. Register the session

        Starts and stops of one id are serialized, so overlapping calls
        always leave a single live shell registered for it.

        Args:
            terminal_id: Caller-supplied identifier
            working_dir: Shell working directory (default: home directory)

        Raises:
            SpawnError: If PTY allocation or shell spawn fails
        """
        self._loop = asyncio.get_running_loop()

        async with self._lock_for(terminal_id):
            existing = self.terminals.pop(terminal_id, None)
            if existing is not None:
                logger.info(f"[TerminalManager] Replacing running terminal: terminal_id={terminal_id}")
                try:
                    await existing.stop()
                except Exception as e:
                    logger.warning(f"[TerminalManager] Failed to stop old terminal {terminal_id}: {e}")

            # Output buffered for a previous shell with this id must not reach the new subscriber
            self.event_broker.discard_backlog(terminal_id)

            cwd = Path(working_dir) if working_dir else Path.home()

            logger.info(
                f"[TerminalManager] Starting terminal: terminal_id={terminal_id}, "
                f"working_dir={cwd}"
            )

            session = PTYSession(
                terminal_id,
                cwd,
                self.event_broker,
                resolve_default_shell(self.shell),
                rows=self.rows,
                cols=self.cols,
                on_exit=self._on_session_exit,
            )
            await session.start()

            self.terminals[terminal_id] = session

            # The shell may already be gone before registration
            if session.exited:
                self._reap(session)

        logger.info(f"[TerminalManager] Terminal started: terminal_id={terminal_id}")

    def _on_session_exit(self, session: PTYSession) -> None:
        # Called from the session's reader thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._reap, session)
        except RuntimeError:
            pass

    def _reap(self, session: PTYSession) -> None:
        """Drop an exited session, unless it was already replaced."""
        if self.terminals.get(session.terminal_id) is not session:
            return

        del self.terminals[session.terminal_id]
        logger.info(f"[TerminalManager] Shell exited: terminal_id={session.terminal_id}")

        # Reap the child and close the PTY master
        asyncio.ensure_future(session.stop())

    def _get(self, terminal_id: str) -> PTYSession:
        session = self.terminals.get(terminal_id)
        if session is None:
            raise NotFoundError(f"Terminal not found: terminal_id={terminal_id}")
        return session

    async def write_terminal(self, terminal_id: str, data: Union[str, bytes]) -> None:
        """
        Send user input to a terminal session.

        Raises:
            NotFoundError: If no session exists for this id
            ChannelIOError: If the write fails
        """
        session = self._get(terminal_id)
        if isinstance(data, str):
            data = data.encode("utf-8")
        await session.write(data)

    async def resize_terminal(self, terminal_id: str, cols: int, rows: int) -> None:
        """
        Resize terminal window.

        Raises:
            NotFoundError: If no session exists for this id
            ChannelIOError: If the ioctl fails
        """
        await self._get(terminal_id).resize(cols, rows)

    async def stop_terminal(self, terminal_id: str) -> None:
        """
        Stop a terminal session.

        The entry is removed whether or not the kill succeeds, and output
        nobody subscribed to is discarded with it.

        Raises:
            NotFoundError: If no session exists for this id
        """
        async with self._lock_for(terminal_id):
            session = self.terminals.pop(terminal_id, None)
            if session is None:
                raise NotFoundError(f"Terminal not found: terminal_id={terminal_id}")

            logger.info(f"[TerminalManager] Stopping terminal: terminal_id={terminal_id}")

            try:
                await session.stop()
            except Exception as e:
                logger.warning(f"[TerminalManager] Error stopping terminal {terminal_id}: {e}")

            self.event_broker.discard_backlog(terminal_id)

        logger.info(f"[TerminalManager] Terminal stopped: terminal_id={terminal_id}")

    def list_terminals(self) -> List[str]:
        return list(self.terminals)

    async def cleanup_all(self) -> None:
        """
        Stop all terminal sessions.

        Errors are logged but don't stop cleanup.
        """
        if not self.terminals:
            logger.debug("[TerminalManager] No terminals to cleanup")
            return

        logger.info(f"[TerminalManager] Cleaning up {len(self.terminals)} terminals")

        for terminal_id in list(self.terminals):
            try:
                await self.stop_terminal(terminal_id)
            except Exception as e:
                logger.error(f"Error stopping terminal {terminal_id}: {e}")

        self.terminals.clear()

        logger.info("[TerminalManager] All terminals cleaned up")
