"""Instance directory helpers shared by the CLI commands"""

import os
from pathlib import Path

INSTANCE_FLAG = ".editorbridge_instance"
PID_FILE = ".editorbridge.pid"


def get_instance_path(path: str | None = None) -> Path:
    """Resolve the instance directory (default: ~/.editorbridge)"""
    if path is None:
        return Path.home() / ".editorbridge"
    return Path(path).resolve()


def is_initialized(instance_path: Path) -> bool:
    return (instance_path / INSTANCE_FLAG).exists()


def load_config(instance_path: Path) -> dict:
    """Parse ``config.toml`` from the instance directory

    Raises:
        FileNotFoundError: config.toml is missing
        tomli.TOMLDecodeError: config.toml is malformed
    """
    import tomli

    with open(instance_path / "config.toml", "rb") as f:
        return tomli.load(f)


def get_pid_file(instance_path: Path) -> Path:
    return instance_path / PID_FILE


def read_pid(instance_path: Path) -> int | None:
    """Server PID from the PID file, None if missing or unreadable"""
    try:
        return int(get_pid_file(instance_path).read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def is_running(instance_path: Path) -> bool:
    # A PID file is left behind only if the server was killed; `stop` clears it
    return get_pid_file(instance_path).exists()


def process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
