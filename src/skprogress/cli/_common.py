"""Shared utilities for all CLI command modules.

Provides the Rich console instance, the default home path, and
helpers to open the configured stores.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .. import PROGRESS_HOME
from ..config import load_config, stores_dir
from ..models import ProgressSnapshot
from ..stores import LocalStores

console = Console()
logger = logging.getLogger("skprogress.cli")


def open_stores(home: str) -> LocalStores:
    home_path = Path(home).expanduser()
    config = load_config(home_path)
    return LocalStores.open(stores_dir(config, home_path))


def progress_table(snapshot: ProgressSnapshot, title: str = "Progress") -> Table:
    """Render a snapshot as a two-column Rich table."""
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Coins", str(snapshot.coins))
    table.add_row("Total earned", str(snapshot.total_earned))
    table.add_row("High score", str(snapshot.high_score))
    table.add_row("Themes", ", ".join(sorted(snapshot.unlocked_themes)))
    table.add_row("Power-ups", ", ".join(sorted(snapshot.owned_power_ups)) or "-")
    table.add_row(
        "Gate", "[green]completed[/]" if snapshot.has_completed_gate else "[dim]not yet[/]",
    )
    return table

