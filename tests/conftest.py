"""Pytest configuration and shared fixtures."""

import asyncio
import sys
import threading
import time
from pathlib import Path

import pytest
import pytest_asyncio

from editorbridge.backend.lsp.language import LanguageServerSpec
from editorbridge.backend.lsp.manager import LanguageServerManager
from editorbridge.backend.terminal.manager import TerminalManager

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_language_server.py"

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="pseudo-terminals need POSIX")


def fake_spec(*args: str, language: str = "fake", manifest: str = None) -> LanguageServerSpec:
    """A language table entry that runs the fake language server."""
    return LanguageServerSpec(
        language=language,
        command=sys.executable,
        args=[str(FAKE_SERVER), *args],
        version_args=["--version"],
        manifest=manifest,
    )


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


class RecordingBroker:
    """Thread-safe event sink that keeps every terminal event."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events = []
        self.discarded = []

    def push_from_worker(self, terminal_id, event):
        with self._lock:
            self.events.append(event)

    def discard_backlog(self, terminal_id):
        with self._lock:
            self.discarded.append(terminal_id)

    def of(self, terminal_id, kind=None):
        with self._lock:
            return [
                e for e in self.events
                if e.terminal_id == terminal_id and (kind is None or e.kind == kind)
            ]

    def output(self, terminal_id) -> bytes:
        return b"".join(e.data for e in self.of(terminal_id, "output"))


@pytest.fixture
def broker():
    return RecordingBroker()


@pytest_asyncio.fixture
async def terminal_manager(broker):
    manager = TerminalManager(broker, shell="/bin/sh")
    yield manager
    await manager.cleanup_all()


@pytest_asyncio.fixture
async def lsp_manager():
    manager = LanguageServerManager(servers={"fake": fake_spec()})
    yield manager
    await manager.cleanup_all()
