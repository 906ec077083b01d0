#!/usr/bin/env python3
"""
podsync CLI - Virtual cluster pod syncer

Main entrypoint for the podsync command-line tool.
"""

import typer
from rich.console import Console
from rich.table import Table

from cli.commands import config, run

app = typer.Typer(
    name="podsync",
    help="Sync Pods from a virtual cluster into a physical host namespace",
    add_completion=False,
)

console = Console()

app.command(name="run")(run.run_command)
app.command(name="config")(config.config_command)


@app.command()
def version():
    """Show version information."""
    from cli import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]podsync[/bold]", f"v{__version__}")
    table.add_row("kopf", _dist_version("kopf"))
    table.add_row("kubernetes", _dist_version("kubernetes"))

    console.print(table)


def _dist_version(name: str) -> str:
    from importlib.metadata import PackageNotFoundError, version as dist_version

    try:
        return dist_version(name)
    except PackageNotFoundError:
        return "not installed"


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
