"""Status command: show the device's progress."""

from __future__ import annotations

import json

import click

from ._common import PROGRESS_HOME, console, open_stores, progress_table


def register_status_commands(main: click.Group) -> None:
    """Register the status command."""

    @main.command()
    @click.option("--home", default=PROGRESS_HOME, type=click.Path())
    @click.option("--json-out", is_flag=True, help="Print the snapshot as JSON.")
    def status(home, json_out):
        """Show local coins, high score, unlocks and gate state."""
        snapshot = open_stores(home).snapshot()
        if json_out:
            click.echo(json.dumps(snapshot.to_record(), indent=2))
            return
        console.print(progress_table(snapshot, title="Local progress"))
