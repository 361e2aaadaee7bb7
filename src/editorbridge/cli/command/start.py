"""Start command implementation"""

import os

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..util import (
    get_instance_path,
    is_initialized,
    is_running,
    get_pid_file,
    load_config,
)

console = Console()


def _server_table(servers) -> Table:
    table = Table(title="Language servers", show_lines=False)
    table.add_column("Language", style="cyan")
    table.add_column("Command")
    table.add_column("Manifest", style="dim")
    for language, spec in servers.items():
        command = " ".join([spec.command, *spec.args])
        table.add_row(language, command, spec.manifest or "-")
    return table


@click.command(name="start", help="Start editorbridge backend server")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
@click.option("--host", default=None, help="Override [server].host from config.toml")
@click.option("--port", type=int, default=None, help="Override [server].port from config.toml")
def start(path: str = None, host: str = None, port: int = None):
    """Run the bridge in the foreground until interrupted

    The language server table is validated before the server binds, so a
    broken [lsp.servers.*] entry fails here instead of on the first request.

    Args:
        path: Instance directory path (default: ~/.editorbridge)
        host: Bind address override
        port: Port override
    """
    from editorbridge.backend.exception import ConfigurationError
    from editorbridge.backend.lsp.language import build_server_table

    instance_path = get_instance_path(path)

    if not is_initialized(instance_path):
        console.print(f"[red]Error: Not initialized at {instance_path}[/red]")
        console.print(f"[yellow]Run: editorbridge init {path or ''}[/yellow]")
        raise click.Abort()

    if is_running(instance_path):
        console.print(f"[red]Error: Instance already running at {instance_path}[/red]")
        console.print("[yellow]Stop it first, or remove a stale PID file with: editorbridge stop[/yellow]")
        raise click.Abort()

    try:
        config = load_config(instance_path)
    except Exception as e:
        console.print(f"[red]Error loading config.toml: {e}[/red]")
        raise click.Abort()

    server_config = config.get("server") or {}
    host = host or server_config.get("host")
    port = port or server_config.get("port")
    if not host or not port:
        console.print("[red]Error: No server address configured[/red]")
        console.print("[yellow]Set host and port in the \\[server] section of config.toml[/yellow]")
        raise click.Abort()

    try:
        servers = build_server_table(config)
    except ConfigurationError as e:
        console.print(f"[red]Error in language server config: {escape(e.message)}[/red]")
        raise click.Abort()

    console.print(f"[cyan]editorbridge instance: {instance_path}[/cyan]")
    console.print(f"[cyan]API: http://{host}:{port}/api  (docs at /docs)[/cyan]")
    console.print(_server_table(servers))

    import uvicorn
    from editorbridge.backend.app import create_app

    app = create_app(instance_path, config)

    pid_file = get_pid_file(instance_path)
    pid_file.write_text(str(os.getpid()))

    try:
        # Logging is configured by create_app; keep uvicorn from replacing it
        uvicorn.run(app, host=host, port=port, log_config=None)
    finally:
        pid_file.unlink(missing_ok=True)
