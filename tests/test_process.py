"""Tests for child process handles."""

import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

from editorbridge.backend.exception import SpawnError
from editorbridge.backend.process import PipedProcess, PtyProcess, resolve_default_shell

from .conftest import posix_only


class TestResolveDefaultShell:
    """Tests for shell resolution."""

    def test_override_used_verbatim(self):
        assert resolve_default_shell("/usr/bin/fish") == ["/usr/bin/fish"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell resolution")
    def test_login_shell_from_environment(self, monkeypatch):
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert resolve_default_shell() == ["/bin/zsh", "-l"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell resolution")
    def test_fallback_without_shell_variable(self, monkeypatch):
        monkeypatch.delenv("SHELL", raising=False)
        assert resolve_default_shell() == ["/bin/sh", "-l"]


class TestPipedProcess:
    """Tests for PipedProcess."""

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        with pytest.raises(SpawnError):
            await PipedProcess.start("definitely-not-a-real-binary-xyz", [], tmp_path)

    @pytest.mark.asyncio
    async def test_missing_working_dir(self, tmp_path):
        with pytest.raises(SpawnError):
            await PipedProcess.start(sys.executable, ["-c", "pass"], tmp_path / "nope")

    @pytest.mark.asyncio
    async def test_kill_is_idempotent(self, tmp_path):
        process = await PipedProcess.start(
            sys.executable, ["-c", "import time; time.sleep(30)"], tmp_path
        )
        assert process.is_alive()

        process.kill()
        await process.wait()
        assert not process.is_alive()

        # Already exited: still a success
        process.kill()
        process.kill()


@posix_only
class TestPtyProcess:
    """Tests for PtyProcess."""

    def test_missing_binary(self, tmp_path):
        with pytest.raises(SpawnError):
            PtyProcess.spawn(["definitely-not-a-real-binary-xyz"], tmp_path)

    def test_echo_through_pty(self, tmp_path):
        process = PtyProcess.spawn(["/bin/sh", "-c", "echo pty-ok"], tmp_path)
        try:
            output = b""
            for _ in range(50):
                chunk = process.read(0.1)
                if chunk is None:
                    continue
                if not chunk:
                    break
                output += chunk
            assert b"pty-ok" in output
        finally:
            process.kill()
            process.wait(timeout=2)
            process.close()

    def test_kill_and_close_are_idempotent(self, tmp_path):
        process = PtyProcess.spawn(["/bin/sh"], tmp_path)
        process.kill()
        assert process.wait(timeout=2) is not None
        assert not process.is_alive()

        process.kill()
        process.close()
        process.close()

    def test_controlling_tty_with_concurrent_spawns(self, tmp_path):
        # Opening /dev/tty fails with ENXIO unless the slave became the controlling terminal
        argv = [sys.executable, "-c", "import os; os.close(os.open('/dev/tty', os.O_RDWR)); print('ctty-ok')"]

        def run_one(_):
            process = PtyProcess.spawn(argv, tmp_path)
            try:
                output = b""
                for _ in range(100):
                    chunk = process.read(0.1)
                    if chunk is None:
                        continue
                    if not chunk:
                        break
                    output += chunk
                return output
            finally:
                process.kill()
                process.wait(timeout=2)
                process.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            outputs = list(pool.map(run_one, range(16)))

        assert all(b"ctty-ok" in output for output in outputs), outputs
