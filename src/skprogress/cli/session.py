"""Session commands: inspect or clear the fallback sign-in session."""

from __future__ import annotations

from pathlib import Path

import click

from ._common import PROGRESS_HOME, console
from ..session import SessionStore


def _session_store(home: str) -> SessionStore:
    return SessionStore(Path(home).expanduser() / "session.json")


def register_session_commands(main: click.Group) -> None:
    """Register the session command group."""

    @main.group()
    def session():
        """Fallback sign-in session stored on this device."""

    @session.command("show")
    @click.option("--home", default=PROGRESS_HOME, type=click.Path())
    def session_show(home):
        """Show who is signed in through the fallback backend."""
        user = _session_store(home).get()
        if user is None:
            console.print("[yellow]No fallback session.[/]")
            return
        name = user.display_name or user.username or user.id
        console.print(f"Signed in as [cyan]{name}[/] [dim]({user.id})[/]")

    @session.command("clear")
    @click.option("--home", default=PROGRESS_HOME, type=click.Path())
    def session_clear(home):
        """Sign out of the fallback backend."""
        if _session_store(home).clear():
            console.print("[green]Session cleared.[/]")
        else:
            console.print("[dim]No session to clear.[/]")
