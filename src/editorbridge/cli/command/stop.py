"""Stop command implementation"""

import os
import signal
import time

import click
from rich.console import Console

from ..util import (
    get_instance_path,
    is_initialized,
    is_running,
    get_pid_file,
    process_alive,
    read_pid,
)

console = Console()

GRACEFUL_TIMEOUT = 10


def _wait_for_exit(pid: int, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not process_alive(pid):
            return True
        time.sleep(0.2)
    return not process_alive(pid)


@click.command(name="stop", help="Stop editorbridge backend server")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Force kill if graceful shutdown fails",
)
def stop(path: str = None, force: bool = False):
    """Stop editorbridge backend server

    Steps:
    1. Send SIGTERM for graceful shutdown (terminals and language servers are torn down)
    2. Wait up to 10 seconds
    3. If still running and --force, send SIGKILL
    4. Clean up PID file

    Args:
        path: Instance directory path (default: ~/.editorbridge)
        force: Force kill if graceful shutdown fails
    """
    instance_path = get_instance_path(path)

    if not is_initialized(instance_path):
        console.print(
            f"[red]Error: Not initialized at {instance_path}[/red]"
        )
        raise click.Abort()

    if not is_running(instance_path):
        console.print(f"[yellow]Instance not running at {instance_path}[/yellow]")
        return

    pid_file = get_pid_file(instance_path)
    pid = read_pid(instance_path)

    if pid is None or not process_alive(pid):
        console.print("[yellow]Stale PID file, removing[/yellow]")
        pid_file.unlink(missing_ok=True)
        return

    console.print(f"Stopping editorbridge (pid={pid})...")
    os.kill(pid, signal.SIGTERM)

    if _wait_for_exit(pid, GRACEFUL_TIMEOUT):
        pid_file.unlink(missing_ok=True)
        console.print("[green]✓ Stopped[/green]")
        return

    if not force:
        console.print(
            f"[red]Error: Server did not stop within {GRACEFUL_TIMEOUT}s[/red]"
        )
        console.print("[yellow]Retry with --force to kill it[/yellow]")
        raise click.Abort()

    console.print("[yellow]Graceful shutdown timed out, force killing[/yellow]")
    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass

    pid_file.unlink(missing_ok=True)
    console.print("[green]✓ Killed[/green]")
