"""Child process handles for the process bridge.

Two flavours of child process are bridged:
- PipedProcess: language servers, stdin/stdout piped, stderr inherited
- PtyProcess: interactive shells hosted on a pseudo-terminal pair

Both expose an idempotent kill(): killing a process that has already
exited is a success, not an error.
"""

import asyncio
import errno
import functools
import logging
import os
import select
import signal
import struct
import subprocess
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from .exception import ChannelIOError, SpawnError

if os.name == "posix":
    import fcntl
    import termios

logger = logging.getLogger(__name__)

PTY_READ_SIZE = 4096

# Language servers emit large responses (completion lists, semantic tokens)
STDOUT_BUFFER_LIMIT = 1024 * 1024


def resolve_default_shell(override: Optional[str] = None) -> List[str]:
    """Return argv for the interactive shell to host in a terminal.

    Args:
        override: Explicit shell from configuration (used verbatim)

    Returns:
        argv list; on non-Windows platforms the login-shell flag is added
    """
    if override:
        return [override]

    if sys.platform == "win32":
        return [os.environ.get("COMSPEC") or "powershell.exe"]

    return [os.environ.get("SHELL") or "/bin/sh", "-l"]


class PipedProcess:
    """
    A child process with piped stdin/stdout.

    Attributes:
        program: Executable that was launched
        process: Underlying asyncio subprocess
    """

    def __init__(self, program: str, process: asyncio.subprocess.Process):
        self.program = program
        self.process = process

    @classmethod
    async def start(
        cls,
        program: str,
        args: Sequence[str],
        working_dir: Path,
    ) -> 'PipedProcess':
        """
        Spawn ``program`` with piped stdio.

        Raises:
            SpawnError: Binary missing, permission denied, bad working dir
        """
        logger.info(f"[PipedProcess] Starting: {program} {' '.join(args)} (cwd={working_dir})")

        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *args,
                cwd=str(working_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                limit=STDOUT_BUFFER_LIMIT,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"[PipedProcess] Failed to start {program}: {e}")
            raise SpawnError(f"Failed to start {program}: {e}")

        logger.info(f"[PipedProcess] Started: {program}, pid={process.pid}")
        return cls(program, process)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def stdin(self) -> asyncio.StreamWriter:
        return self.process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self.process.stdout

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def is_alive(self) -> bool:
        return self.process.returncode is None

    def kill(self) -> None:
        """Kill the process; no-op if it has already exited."""
        if self.process.returncode is not None:
            return

        try:
            self.process.kill()
            logger.info(f"[PipedProcess] Killed: {self.program}, pid={self.pid}")
        except ProcessLookupError:
            pass

    async def wait(self) -> int:
        return await self.process.wait()


def _controlling_tty_hook():
    """Popen preexec_fn making the PTY slave (fd 0) the controlling terminal.

    The hook runs in the forked child after setsid(), while other threads of
    the server may have held locks at fork time. It is a partial over
    fcntl.ioctl, so the child makes a single C call and never imports or logs.
    """
    return functools.partial(fcntl.ioctl, 0, termios.TIOCSCTTY, 0)


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    # Pack window size: (rows, cols, xpixel, ypixel)
    winsize = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


class PtyProcess:
    """
    A child process attached to a pseudo-terminal.

    The master side is owned by this object. Reads are blocking and are
    meant to run on a dedicated thread; writes are serialized through a
    single writer lock.

    Attributes:
        argv: Command line of the child
        proc: Underlying Popen handle
        master_fd: PTY master file descriptor
    """

    def __init__(self, argv: List[str], proc: subprocess.Popen, master_fd: int):
        self.argv = argv
        self.proc = proc
        self.master_fd = master_fd
        self._write_lock = threading.Lock()
        self._closed = False

    @classmethod
    def spawn(
        cls,
        argv: List[str],
        working_dir: Path,
        rows: int = 24,
        cols: int = 80,
    ) -> 'PtyProcess':
        """
        Allocate a PTY pair and spawn ``argv`` with the slave as its
        controlling terminal.

        Raises:
            SpawnError: PTY allocation failed, binary missing, bad working dir
        """
        if os.name != "posix":
            raise SpawnError(f"Pseudo-terminals are not supported on {sys.platform}")

        import pty

        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(f"Failed to allocate pseudo-terminal: {e}")

        env = dict(os.environ)
        env["TERM"] = "xterm-256color"

        try:
            _set_winsize(slave_fd, rows, cols)
            proc = subprocess.Popen(
                argv,
                cwd=str(working_dir),
                env=env,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                close_fds=True,
                start_new_session=True,
                preexec_fn=_controlling_tty_hook(),
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise SpawnError(f"Failed to spawn {argv[0]}: {e}")
        finally:
            os.close(slave_fd)

        logger.info(f"[PtyProcess] Spawned: {' '.join(argv)}, pid={proc.pid}, cwd={working_dir}")
        return cls(argv, proc, master_fd)

    @property
    def pid(self) -> int:
        return self.proc.pid

    def is_alive(self) -> bool:
        return self.proc.poll() is None

    def read(self, timeout: float = 0.1) -> Optional[bytes]:
        """
        Blocking read from the PTY master.

        Returns:
            A chunk of bytes, None if nothing arrived within ``timeout``,
            or b"" once the slave side has closed (shell exited)

        Raises:
            ChannelIOError: Unexpected read failure
        """
        ready, _, _ = select.select([self.master_fd], [], [], timeout)
        if not ready:
            return None

        try:
            return os.read(self.master_fd, PTY_READ_SIZE)
        except OSError as e:
            # Linux reports a hung-up slave as EIO rather than EOF
            if e.errno == errno.EIO:
                return b""
            raise ChannelIOError(f"PTY read failed: {e}")

    def write(self, data: bytes) -> None:
        """Write all of ``data`` to the PTY master."""
        with self._write_lock:
            if self._closed:
                raise ChannelIOError("PTY is closed")

            view = memoryview(data)
            try:
                while view:
                    written = os.write(self.master_fd, view)
                    view = view[written:]
            except OSError as e:
                raise ChannelIOError(f"PTY write failed: {e}")

    def resize(self, cols: int, rows: int) -> None:
        try:
            _set_winsize(self.master_fd, rows, cols)
        except OSError as e:
            raise ChannelIOError(f"PTY resize failed: {e}")

    def kill(self) -> None:
        """Hang up the shell's process group and kill the shell."""
        if self.proc.poll() is not None:
            return

        try:
            os.killpg(self.proc.pid, signal.SIGHUP)
        except (ProcessLookupError, PermissionError):
            pass

        try:
            self.proc.kill()
        except ProcessLookupError:
            pass

        logger.info(f"[PtyProcess] Killed: pid={self.proc.pid}")

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        try:
            return self.proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def close(self) -> None:
        """Close the master side; safe to call more than once."""
        with self._write_lock:
            if self._closed:
                return
            self._closed = True

        try:
            os.close(self.master_fd)
        except OSError:
            pass
