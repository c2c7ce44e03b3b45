# citenet/export/formats.py

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from citenet.config.settings import settings
from citenet.models.article import Article, author_string
from citenet.models.session import GraphSession

logger = logging.getLogger("citenet.export")

CSV_COLUMNS = [
    "id", "doi", "#", "type", "title", "authors", "journal", "year", "date",
    "volume", "issue", "firstPage", "lastPage", "abstract", "globalCitationsCount",
    "referencesCount", "citedCount", "citingCount", "referencesIds", "citedIds", "citingIds",
]

# Article groups accepted by `select_articles`.
ARTICLE_GROUPS = ("input", "incoming", "outgoing", "all")

_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _cell(value) -> str:
    if value is None or value is False:
        return ""
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value if v)
    text = str(value)
    # Spreadsheets evaluate cells starting with these as formulas.
    if text.startswith(_FORMULA_PREFIXES):
        return "'" + text
    return text


def select_articles(session: GraphSession, group: str = "all") -> List[Article]:
    if group == "input":
        return list(session.input)
    if group == "incoming":
        return list(session.incoming_suggestions)
    if group == "outgoing":
        return list(session.outgoing_suggestions)
    if group == "all":
        return session.known_articles
    raise ValueError(f"Unknown article group {group!r}; expected one of {ARTICLE_GROUPS}")


def to_csv(session: GraphSession, articles: Optional[Iterable[Article]] = None) -> str:
    """
    Semicolon-separated CSV (with a `sep=;` hint line) including local degrees.
    """
    articles = session.known_articles if articles is None else list(articles)
    created = datetime.fromtimestamp(session.created_at).strftime("%d %B %Y")

    buffer = io.StringIO()
    buffer.write("sep=;\n")
    writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([f"# {session.label}: data retrieved through {session.api.value} on {created}"])
    writer.writerow(CSV_COLUMNS)

    for a in articles:
        writer.writerow([
            _cell(v) for v in (
                a.id,
                a.doi,
                a.number_in_source_references,
                a.type,
                a.title,
                author_string(a.authors),
                a.journal,
                a.year,
                a.date,
                a.volume,
                a.issue,
                a.first_page,
                a.last_page,
                a.abstract,
                a.citations_count,
                a.references_count if a.references_count is not None else len(a.references),
                session.in_degree(a.id),
                session.out_degree(a.id),
                a.references,
                session.referenced_by.get(a.id),
                session.citing.get(a.id),
            )
        ])

    return buffer.getvalue()


def to_ris(session: GraphSession, articles: Optional[Iterable[Article]] = None) -> str:
    """RIS records (one JOUR entry per article) with local degrees in N1."""
    articles = session.known_articles if articles is None else list(articles)
    input_ids = set(session.input_ids)
    lines: List[str] = []

    for a in articles:
        lines.append("TY  - JOUR")
        if a.id:
            lines.append(f"ID  - {a.id}")
        if a.doi:
            lines.append(f"DO  - {a.doi}")
        lines.append(f"TI  - {a.title}")
        for author in a.authors:
            name = f"{author.last_name}, {author.first_name}" if author.first_name else author.last_name
            lines.append(f"AU  - {name}")
        if a.journal:
            lines.append(f"JO  - {a.journal}")
        if a.year:
            lines.append(f"PY  - {a.year}")
        if a.volume:
            lines.append(f"VL  - {a.volume}")
        if a.issue:
            lines.append(f"IS  - {a.issue}")
        if a.first_page:
            lines.append(f"SP  - {a.first_page}")
        if a.last_page:
            lines.append(f"EP  - {a.last_page}")
        if a.abstract:
            lines.append(f"AB  - {a.abstract}")
        if a.id:
            note = "Input Article\n" if a.id in input_ids else ""
            references_count = a.references_count if a.references_count is not None else len(a.references)
            note += (
                f"Total Citations: {a.citations_count}\n"
                f"Total References: {references_count}\n"
                f"Cited: {session.in_degree(a.id)}\n"
                f"Citing: {session.out_degree(a.id)}"
            )
            lines.append(f"N1  - {note}")
        lines.append("ER  - ")
        lines.append("")

    return "\n".join(lines)


def safe_name(label: str) -> str:
    return re.sub(r"[^\w.-]+", "_", label).strip("_") or "session"


def export_session(
    session: GraphSession,
    fmt: str = "csv",
    group: str = "all",
    directory: Optional[Union[str, Path]] = None,
) -> Path:
    """Write `session` as CSV or RIS into `directory` (default settings.exports_dir)."""
    articles = select_articles(session, group)
    if fmt == "csv":
        content = to_csv(session, articles)
    elif fmt == "ris":
        content = to_ris(session, articles)
    else:
        raise ValueError(f"Unsupported export format {fmt!r}; expected 'csv' or 'ris'")

    out_dir = Path(directory) if directory is not None else settings.exports_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    suffix = "" if group == "all" else f"-{group}"
    path = out_dir / f"{safe_name(session.label)}{suffix}.{fmt}"
    path.write_text(content, encoding="utf-8")
    logger.info("Exported %d articles to %s", len(articles), path)
    return path
