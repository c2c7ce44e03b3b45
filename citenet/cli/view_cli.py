# citenet/cli/view_cli.py

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from citenet.cli.session_cli import load_saved_sessions, pick_session
from citenet.export.formats import ARTICLE_GROUPS, export_session
from citenet.graph.completeness import estimate_completeness
from citenet.graph.io import citation_graph, save_graph
from citenet.graph.render import build_author_network, build_citation_network
from citenet.graph.schema import NodeColor
from citenet.session.manager import sort_incoming, sort_input, sort_outgoing

console = Console()


def _pct(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value * 100:.0f}%"


def network(
    index: Optional[int] = typer.Option(None, "--index", "-i", help="Session index (default: latest)."),
    hide_source: bool = typer.Option(False, "--hide-source", help="Leave the seed article out."),
    node_color: NodeColor = typer.Option(NodeColor.YEAR, "--color", help="Node grouping."),
    incoming: Optional[int] = typer.Option(None, "--incoming", min=0, help="Visible incoming suggestions."),
    outgoing: Optional[int] = typer.Option(None, "--outgoing", min=0, help="Visible outgoing suggestions."),
    as_json: bool = typer.Option(False, "--json", help="Print the node/edge model as JSON."),
    graphml: Optional[Path] = typer.Option(
        None,
        "--graphml",
        help="Also write the citation graph of all known articles to this GraphML file.",
    ),
) -> None:
    """
    Show the citation network of a session (tables, or the render model as JSON).
    """
    session = pick_session(load_saved_sessions(), index)
    session.set_visible_suggestions(incoming=incoming, outgoing=outgoing)

    graph_path = save_graph(citation_graph(session), graphml) if graphml is not None else None

    if as_json:
        model = build_citation_network(session, show_source=not hide_source, node_color=node_color)
        typer.echo(json.dumps(model.model_dump(by_alias=True), indent=2))
        return

    for title, articles in (
        ("Input articles", sort_input(session)),
        ("Incoming suggestions", sort_incoming(session)[: session.visible_incoming_count]),
        ("Outgoing suggestions", sort_outgoing(session)[: session.visible_outgoing_count]),
    ):
        if not articles:
            continue
        table = Table(title=f"{title} ({session.label})")
        table.add_column("Id")
        table.add_column("First author")
        table.add_column("Year", justify="right")
        table.add_column("Title")
        table.add_column("In", justify="right")
        table.add_column("Out", justify="right")
        for a in articles:
            first = a.first_author
            table.add_row(
                a.id or "",
                first.last_name if first else "",
                str(a.year or ""),
                a.title[:80],
                str(session.in_degree(a.id)),
                str(session.out_degree(a.id)),
            )
        console.print(table)

    if graph_path is not None:
        console.print(f"Wrote {graph_path}")


def authors(
    index: Optional[int] = typer.Option(None, "--index", "-i"),
    min_publications: Optional[int] = typer.Option(
        None,
        "--min-publications",
        "-m",
        min=1,
        help="Pin the publication threshold instead of the adaptive search.",
    ),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """
    Show the co-authorship network of a session.
    """
    session = pick_session(load_saved_sessions(), index)
    model = build_author_network(session, min_publications=min_publications)

    if as_json:
        typer.echo(json.dumps(model.model_dump(by_alias=True), indent=2))
        return

    table = Table(title=f"Authors with >= {model.chosen_threshold} publications ({session.label})")
    table.add_column("Author")
    table.add_column("Publications", justify="right")
    table.add_column("Group")
    table.add_column("Co-authors", justify="right")

    degree = {}
    for edge in model.edges:
        degree[edge.from_id] = degree.get(edge.from_id, 0) + 1
        degree[edge.to_id] = degree.get(edge.to_id, 0) + 1

    for node in model.nodes:
        name = f"{node.label} *" if node.shape_key == "source_author" else node.label
        table.add_row(name, str(node.size_weight), node.group_key or "", str(degree.get(node.id, 0)))

    console.print(table)


def completeness(
    index: Optional[int] = typer.Option(None, "--index", "-i"),
) -> None:
    """
    Print data-completeness statistics for a session.
    """
    session = pick_session(load_saved_sessions(), index)
    report = estimate_completeness(session)

    table = Table(title=f"Completeness ({session.label}, {session.api.value})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Original references", str(report.source_reference_count))
    table.add_row("Input articles (without source)", str(report.input_without_source))
    table.add_row("Reference coverage", _pct(report.reference_coverage))
    table.add_row("Inputs with own reference list", _pct(report.reference_list_coverage))
    table.add_row("Average inner completeness", _pct(report.average_inner_completeness))
    table.add_row("Overall", _pct(report.overall))

    console.print(table)
    console.print(report.label)


def export(
    index: Optional[int] = typer.Option(None, "--index", "-i"),
    fmt: str = typer.Option("csv", "--format", "-f", help="'csv' or 'ris'."),
    group: str = typer.Option("all", "--group", "-g", help=f"One of {', '.join(ARTICLE_GROUPS)}."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o"),
) -> None:
    """
    Export a session's articles as CSV or RIS.
    """
    session = pick_session(load_saved_sessions(), index)
    try:
        path = export_session(session, fmt=fmt, group=group, directory=output_dir)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Wrote {path}")
