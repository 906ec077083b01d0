"""
Config command: parse the environment configuration and show the result
"""

import json

import typer
from rich.console import Console
from rich.table import Table

from podsync.core.errors import ConfigError
from vpod_operator.config import SyncerConfig

console = Console()


def config_command(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Validate the PODSYNC_* environment and print the effective settings.

    Exits with code 1 when the configuration would stop the operator.
    """
    try:
        cfg = SyncerConfig.from_env()
        settings = cfg.to_dict()
    except ConfigError as e:
        if json_output:
            print(json.dumps({"valid": False, "error": str(e)}))
        else:
            console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)

    if json_output:
        print(json.dumps({"valid": True, "config": settings}, indent=2, sort_keys=True))
        raise typer.Exit(0)

    table = Table(title="podsync configuration")
    table.add_column("Setting", style="green")
    table.add_column("Value", style="cyan")
    for key in sorted(settings):
        value = settings[key]
        if isinstance(value, (dict, list)):
            value = json.dumps(value, sort_keys=True)
        table.add_row(key, "-" if value is None else str(value))

    console.print(table)
    console.print("[green]✓ Configuration is valid[/green]")
