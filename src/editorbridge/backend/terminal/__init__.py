"""Terminal management module.

This module provides PTY (pseudo-terminal) support for interactive
terminal sessions. It handles terminal lifecycle, I/O operations, and
event delivery.

Components:
- TerminalManager: Registry of all terminal sessions
- PTYSession: Individual shell + PTY wrapper
"""

from .manager import TerminalManager
from .pty_session import PTYSession, TerminalEvent

__all__ = ['TerminalManager', 'PTYSession', 'TerminalEvent']
