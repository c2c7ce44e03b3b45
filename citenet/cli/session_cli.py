# citenet/cli/session_cli.py

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from citenet.config.settings import ProviderName, settings
from citenet.errors import CitenetError, SessionError
from citenet.graph.storage import load_latest_sessions, load_sessions, save_sessions
from citenet.ingest.identifiers import read_identifier_file
from citenet.ingest.pipeline import ResolutionPipeline
from citenet.models.session import GraphSession
from citenet.providers.registry import get_provider
from citenet.session.manager import SessionManager

console = Console()
logger = logging.getLogger("citenet.cli")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _manager(provider: Optional[ProviderName]) -> SessionManager:
    """
    Session manager for `provider`, pre-loaded with the latest saved sessions.
    """
    pipeline = ResolutionPipeline(get_provider(provider))
    manager = SessionManager(pipeline)
    saved = load_latest_sessions(settings.sessions_dir)
    if saved:
        manager.restore(saved)
    return manager


def _print_progress(session: GraphSession, stage: str) -> None:
    console.print(f"[dim]{session.label}: {stage} stage complete[/dim]")


def _report(session: GraphSession) -> None:
    console.print(
        f"[green]Session[/green] {session.label!r}: "
        f"{len(session.input)} input, "
        f"{len(session.incoming_suggestions)} incoming, "
        f"{len(session.outgoing_suggestions)} outgoing suggestions"
    )
    for message in session.errors:
        console.print(f"[yellow]warning:[/yellow] {message}")


def load_saved_sessions() -> List[GraphSession]:
    sessions = load_latest_sessions(settings.sessions_dir)
    if not sessions:
        console.print(
            f"[red]No saved sessions in {settings.sessions_dir}.[/red]\n"
            "Run `citenet explore` or `citenet import-list` first."
        )
        raise typer.Exit(code=1)
    return sessions


def pick_session(sessions: List[GraphSession], index: Optional[int]) -> GraphSession:
    """Session at `index`, defaulting to the most recent one."""
    if index is None:
        return sessions[-1]
    if not 0 <= index < len(sessions):
        console.print(f"[red]No session at index {index}[/red] (0..{len(sessions) - 1}).")
        raise typer.Exit(code=1)
    return sessions[index]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def explore(
    seed: str = typer.Argument(..., help="DOI, PMID or provider id of the seed article."),
    provider: Optional[ProviderName] = typer.Option(
        None,
        "--provider",
        "-p",
        help="Metadata provider (default: settings.default_provider).",
    ),
    references_file: Optional[Path] = typer.Option(
        None,
        "--references-file",
        "-r",
        help="Use the identifiers in this file as the seed's reference list.",
    ),
) -> None:
    """
    Build a citation network around SEED and save it with the other sessions.
    """
    manager = _manager(provider)
    manager.subscribe(_print_progress)

    custom = read_identifier_file(references_file) if references_file is not None else None

    try:
        session = asyncio.run(manager.create_from_seed(seed, custom))
    except CitenetError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    path = save_sessions(manager.sessions)
    _report(session)
    console.print(f"Saved {len(manager.sessions)} session(s) to {path}")


def import_list(
    source: Path = typer.Argument(
        ...,
        exists=True,
        readable=True,
        help="Text file to scan for DOIs (one id per line works too), or a saved sessions JSON file.",
    ),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Session label (default: file name)."),
    provider: Optional[ProviderName] = typer.Option(None, "--provider", "-p"),
) -> None:
    """
    Open a session from an identifier list, or restore sessions from a JSON snapshot.
    """
    manager = _manager(provider)

    if source.suffix.lower() == ".json":
        try:
            added = manager.restore(load_sessions(source))
        except (ValueError, KeyError) as exc:
            console.print(f"[red]Could not load sessions from {source}:[/red] {exc}")
            raise typer.Exit(code=1)
        path = save_sessions(manager.sessions)
        console.print(f"Restored {len(added)} session(s); saved to {path}")
        return

    manager.subscribe(_print_progress)
    try:
        identifiers = read_identifier_file(source)
        session = asyncio.run(manager.create_from_identifier_list(identifiers, label or source.name))
    except CitenetError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    path = save_sessions(manager.sessions)
    _report(session)
    console.print(f"Saved {len(manager.sessions)} session(s) to {path}")


def sessions(
    close: Optional[int] = typer.Option(None, "--close", help="Close the session at this index."),
    close_all: bool = typer.Option(False, "--close-all", help="Close every saved session."),
) -> None:
    """
    List saved sessions (optionally closing some).
    """
    manager = _manager(None)

    if close_all:
        manager.close_all()
        save_sessions(manager.sessions)
        console.print("Closed all sessions.")
        return

    if close is not None:
        try:
            label = manager.get(close).label
            manager.close(close)
        except SessionError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1)
        save_sessions(manager.sessions)
        console.print(f"Closed session {label!r}.")

    saved = manager.sessions
    if not saved:
        console.print("[yellow]No sessions.[/yellow]")
        return

    table = Table(title="Sessions")
    table.add_column("#", justify="right")
    table.add_column("Label")
    table.add_column("Provider")
    table.add_column("Input", justify="right")
    table.add_column("Incoming", justify="right")
    table.add_column("Outgoing", justify="right")
    table.add_column("Errors", justify="right")

    for i, s in enumerate(saved):
        table.add_row(
            str(i),
            s.label,
            s.api.value,
            str(len(s.input)),
            str(len(s.incoming_suggestions)),
            str(len(s.outgoing_suggestions)),
            str(len(s.errors)),
        )

    console.print(table)
