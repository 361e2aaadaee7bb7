"""Init command implementation"""

import json
import shutil
from datetime import datetime

import click
from rich.console import Console

from editorbridge.backend.lsp.language import DEFAULT_SERVERS

from ..util import INSTANCE_FLAG, get_instance_path, is_initialized

console = Console()

DEFAULT_CONFIG = """[server]
host = "127.0.0.1"
port = 18890

[cors]
allow_origins = ["http://localhost:1420", "tauri://localhost"]
allow_credentials = true
allow_methods = ["*"]
allow_headers = ["*"]

[lsp]
# Language server listeners bind here on an OS-assigned port
host = "127.0.0.1"

# Override or add language servers:
# [lsp.servers.rust]
# command = "rust-analyzer"
# args = []
# version_args = ["--version"]
# manifest = "Cargo.toml"

[terminal]
# Empty: $SHELL (login shell) or /bin/sh; powershell.exe on Windows
shell = ""
rows = 24
cols = 80
"""


@click.command(name="init", help="Initialize a new editorbridge instance")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
def init(path: str = None):
    """Initialize a new editorbridge instance

    Args:
        path: Instance directory path (default: ~/.editorbridge)
    """
    instance_path = get_instance_path(path)

    if is_initialized(instance_path):
        console.print(
            f"[red]Error: Already initialized at {instance_path}[/red]"
        )
        raise click.Abort()

    if instance_path.exists() and any(instance_path.iterdir()):
        console.print(
            f"[red]Error: Directory is not empty: {instance_path}[/red]"
        )
        raise click.Abort()

    console.print(f"Initializing editorbridge instance at {instance_path}")
    console.print("")

    instance_path.mkdir(parents=True, exist_ok=True)
    (instance_path / "logs").mkdir(exist_ok=True)

    console.print("Generating configuration...")
    config_file = instance_path / "config.toml"
    config_file.write_text(DEFAULT_CONFIG)

    flag_data = {
        "initialized_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "instance_path": str(instance_path),
    }
    with open(instance_path / INSTANCE_FLAG, "w") as f:
        json.dump(flag_data, f, indent=2)

    console.print(f"[green]✓ Instance ready at {instance_path}[/green]")
    console.print("")

    # Binaries are only looked up here; health is probed per request at runtime
    console.print("Language servers on PATH:")
    for language, spec in DEFAULT_SERVERS.items():
        found = shutil.which(spec.command)
        if found:
            console.print(f"  [green]✓[/green] {language}: {found}")
        else:
            console.print(f"  [yellow]✗[/yellow] {language}: {spec.command} not found (configure \\[lsp.servers.{language}])")

    console.print("")
    console.print(f"Config: {config_file}")
    console.print(f"Logs:   {instance_path / 'logs'}")
    console.print(f"Run:    editorbridge start {path or ''}".rstrip())
