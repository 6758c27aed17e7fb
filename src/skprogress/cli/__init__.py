"""
SKProgress CLI — inspect and sync a player's progress.

The main Click group is defined here and every command group
is registered from its own module.

Entry point: skprogress.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="skprogress")
@click.option("--verbose", "-v", is_flag=True, help="Log sync activity.")
def main(verbose):
    """SKProgress — keep arcade progress in step with the cloud."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .status import register_status_commands
from .sync_cmd import register_sync_commands
from .session import register_session_commands

register_status_commands(main)
register_sync_commands(main)
register_session_commands(main)
