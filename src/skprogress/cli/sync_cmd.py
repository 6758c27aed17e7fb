"""Sync commands: run one sync pass, merge two snapshot files."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from ._common import PROGRESS_HOME, console, open_stores, progress_table
from ..cloud import create_cloud_store, is_cloud_configured
from ..config import load_config
from ..merge import merge
from ..models import AuthSource, Identity, ProgressSnapshot
from ..progress import ProgressLoader, ProgressWriter
from ..sync import SyncOrchestrator, SyncOutcome


def _read_snapshot(path: str) -> ProgressSnapshot:
    try:
        return ProgressSnapshot.model_validate(
            json.loads(Path(path).read_text(encoding="utf-8"))
        )
    except (json.JSONDecodeError, ValidationError) as exc:
        console.print(f"[bold red]Invalid snapshot {path}:[/] {exc}")
        sys.exit(1)


def register_sync_commands(main: click.Group) -> None:
    """Register the sync and merge commands."""

    @main.command("sync")
    @click.option("--home", default=PROGRESS_HOME, type=click.Path())
    @click.option("--user-id", required=True, help="Signed-in user id.")
    @click.option(
        "--source",
        type=click.Choice([s.value for s in AuthSource]),
        default=AuthSource.PRIMARY.value,
        show_default=True,
        help="Which sign-in backend the id came from.",
    )
    def sync(home, user_id, source):
        """Reconcile local progress with the cloud record."""
        home_path = Path(home).expanduser()
        config = load_config(home_path)
        if not is_cloud_configured(config.cloud):
            console.print("[bold red]Cloud not configured.[/] Set the url and API key.")
            sys.exit(1)

        store = create_cloud_store(config.cloud, home_path)
        orchestrator = SyncOrchestrator(
            open_stores(home),
            ProgressLoader(store),
            ProgressWriter(store, debounce_seconds=config.debounce_seconds),
        )
        identity = Identity(id=user_id, source=AuthSource(source))

        async def _run():
            task = orchestrator.trigger(identity, ready=True)
            return await task if task is not None else None

        report = asyncio.run(_run())
        color = {
            SyncOutcome.MERGED: "green",
            SyncOutcome.NO_CLOUD_RECORD: "yellow",
        }.get(report.outcome, "red")
        console.print(
            f"\n  Sync for [cyan]{identity.user_key}[/] via {store.name}: "
            f"[{color}]{report.outcome.value}[/]"
        )
        if report.error:
            console.print(f"  [dim]{report.error}[/]")
        if report.merged is not None:
            console.print(progress_table(report.merged, title="Merged progress"))
        console.print()

    @main.command("merge")
    @click.argument("local_json", type=click.Path(exists=True, dir_okay=False))
    @click.argument("cloud_json", type=click.Path(exists=True, dir_okay=False))
    def merge_cmd(local_json, cloud_json):
        """Merge two snapshot files and print the result as JSON."""
        merged = merge(_read_snapshot(local_json), _read_snapshot(cloud_json))
        click.echo(json.dumps(merged.to_record(), indent=2))
