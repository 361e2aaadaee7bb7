"""editorbridge CLI entry point"""

import click

from .command.init import init
from .command.start import start
from .command.stop import stop


@click.group(
    name="editorbridge",
    help="editorbridge - terminal and language server bridge for a web code editor",
)
def main():
    """Main CLI entry point"""
    pass


main.add_command(init)
main.add_command(start)
main.add_command(stop)


if __name__ == "__main__":
    main()
