"""
Persisting and reloading graph sessions as JSON snapshots.

- `snapshot_sessions(sessions) -> list[dict]` / `restore_sessions(data) -> list[GraphSession]`
  convert between live sessions and plain JSON data.
- `save_sessions(sessions, name=None, directory=None) -> Path` writes a snapshot and
  keeps a "sessions-latest.json" copy next to it.
- `load_latest_sessions(directory=None)` returns the most recent snapshot, or None.

Restoring upgrades older snapshots: legacy camelCase keys are renamed and a
missing `citing` map is rebuilt from the stored reference lists, without any
network call.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from citenet.config.settings import ProviderName, settings
from citenet.graph.adjacency import CitationAdjacency, build_adjacency
from citenet.graph.suggestions import backfill_citing
from citenet.models.article import Article
from citenet.models.session import GraphSession

logger = logging.getLogger("citenet.graph.storage")

LATEST_NAME = "sessions-latest.json"

# Snapshots written before versioning carry no "snapshot_version" and count as 1.
SNAPSHOT_VERSION = 2

# Older snapshot layouts, oldest names first.
_LEGACY_SESSION_KEYS = {
    "seedArticles": "input",
    "citedArticles": "incoming_suggestions",
    "citingArticles": "outgoing_suggestions",
    "incomingSuggestions": "incoming_suggestions",
    "outgoingSuggestions": "outgoing_suggestions",
    "maxCitedArticles": "max_incoming_suggestions",
    "maxCitingArticles": "max_outgoing_suggestions",
    "maxIncomingSuggestions": "max_incoming_suggestions",
    "maxOutgoingSuggestions": "max_outgoing_suggestions",
    "authorNetworkMinPublications": "collaboration_min_publications",
    "tabLabel": "label",
    "tabTitle": "title",
    "API": "api",
    "referencedBy": "referenced_by",
}

_LEGACY_ARTICLE_KEYS = {
    "numberInSourceReferences": "number_in_source_references",
    "citationsCount": "citations_count",
    "referencesCount": "references_count",
    "firstPage": "first_page",
    "lastPage": "last_page",
    "isRetracted": "is_retracted",
    "isSource": "is_source",
    "customListOfReferences": "custom_list_of_references",
}

_LEGACY_AUTHOR_KEYS = {"LN": "last_name", "FN": "first_name", "affil": "affiliation"}

_API_ALIASES = {
    "OpenAlex": ProviderName.OPENALEX,
    "Semantic Scholar": ProviderName.SEMANTIC_SCHOLAR,
    "Crossref": ProviderName.CROSSREF,
    "OpenCitations": ProviderName.OPENCITATIONS,
}


# -------------------------------------------------------------------
# Snapshot <-> sessions
# -------------------------------------------------------------------

def snapshot_session(session: GraphSession, max_suggestions: Optional[int] = None) -> Dict[str, Any]:
    """
    JSON-ready dict for one session. Suggestion lists are deduplicated against
    the input and truncated to `max_suggestions`.
    """
    cap = settings.snapshot_max_suggestions if max_suggestions is None else max_suggestions
    input_ids = set(session.input_ids)
    incoming = [a for a in session.incoming_suggestions if a.id not in input_ids][:cap]
    incoming_ids = {a.id for a in incoming}
    outgoing = [
        a for a in session.outgoing_suggestions
        if a.id not in input_ids and a.id not in incoming_ids
    ][:cap]

    return {
        "snapshot_version": SNAPSHOT_VERSION,
        "api": session.api.value,
        "created_at": session.created_at,
        "label": session.label,
        "title": session.title,
        "source": session.source.to_dict(),
        "input": [a.to_dict() for a in session.input],
        "incoming_suggestions": [a.to_dict() for a in incoming],
        "outgoing_suggestions": [a.to_dict() for a in outgoing],
        "referenced_by": session.adjacency.referenced_by,
        "citing": session.adjacency.citing,
        "max_incoming_suggestions": session.max_incoming_suggestions,
        "max_outgoing_suggestions": session.max_outgoing_suggestions,
        "collaboration_min_publications": session.collaboration_min_publications,
        "errors": list(session.errors),
    }


def snapshot_sessions(sessions: Iterable[GraphSession], max_suggestions: Optional[int] = None) -> List[Dict[str, Any]]:
    return [snapshot_session(s, max_suggestions=max_suggestions) for s in sessions]


def _upgrade_article(data: Dict[str, Any]) -> Dict[str, Any]:
    article = {_LEGACY_ARTICLE_KEYS.get(k, k): v for k, v in data.items()}
    article["authors"] = [
        {_LEGACY_AUTHOR_KEYS.get(k, k): v for k, v in (a or {}).items()}
        for a in article.get("authors") or []
    ]
    for author in article["authors"]:
        author.setdefault("last_name", "")
    return article


def upgrade_snapshot(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename legacy keys; missing fields are left for `restore_session` to fill."""
    upgraded: Dict[str, Any] = {}
    for key, value in data.items():
        upgraded.setdefault(_LEGACY_SESSION_KEYS.get(key, key), value)

    if "timestamp" in upgraded and "created_at" not in upgraded:
        # Legacy timestamps are milliseconds.
        upgraded["created_at"] = upgraded.pop("timestamp") / 1000.0

    api = upgraded.get("api")
    upgraded["api"] = _API_ALIASES.get(api, api) if api else settings.default_provider.value
    return upgraded


def _articles(values: Optional[List[Dict[str, Any]]]) -> List[Article]:
    return [Article.from_dict(_upgrade_article(v)) for v in values or [] if v]


def restore_session(data: Dict[str, Any]) -> GraphSession:
    version = data.get("snapshot_version", 1)
    if version > SNAPSHOT_VERSION:
        raise ValueError(
            f"Snapshot version {version} is newer than the supported version {SNAPSHOT_VERSION}."
        )
    if version < SNAPSHOT_VERSION:
        logger.info("Upgrading snapshot %r from version %s", data.get("label") or data.get("tabLabel"), version)
    data = upgrade_snapshot(data)

    source = Article.from_dict(_upgrade_article(data.get("source") or {"id": None}))
    session = GraphSession(
        source=source,
        api=ProviderName(data["api"]),
        input=_articles(data.get("input")),
        incoming_suggestions=_articles(data.get("incoming_suggestions")),
        outgoing_suggestions=_articles(data.get("outgoing_suggestions")),
        label=data.get("label") or "",
        title=data.get("title") or "",
        max_incoming_suggestions=data.get("max_incoming_suggestions"),
        max_outgoing_suggestions=data.get("max_outgoing_suggestions"),
        collaboration_min_publications=data.get("collaboration_min_publications"),
        errors=list(data.get("errors") or []),
    )
    if data.get("created_at") is not None:
        session.created_at = float(data["created_at"])

    referenced_by = data.get("referenced_by")
    citing = data.get("citing")

    if referenced_by is not None:
        session.adjacency.referenced_by = {k: list(v) for k, v in referenced_by.items()}
    else:
        build_adjacency(session.input, session.input_ids, False, existing=session.adjacency)

    if citing is not None:
        session.adjacency.citing = {k: list(v) for k, v in citing.items()}
    else:
        logger.info("Snapshot %r has no citing map; rebuilding from reference lists", session.label)
        rebuilt = CitationAdjacency()
        backfill_citing(
            rebuilt,
            session.input + session.incoming_suggestions + session.outgoing_suggestions,
            session.input_ids,
        )
        for key, values in rebuilt.citing.items():
            for value in values:
                session.adjacency.add_citing(key, value)

    return session


def restore_sessions(data: Iterable[Dict[str, Any]]) -> List[GraphSession]:
    return [restore_session(d) for d in data]


# -------------------------------------------------------------------
# Files
# -------------------------------------------------------------------

def _ensure_dir(directory: Optional[Path]) -> Path:
    directory = Path(directory) if directory is not None else settings.sessions_dir
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def save_sessions(
    sessions: Iterable[GraphSession],
    name: Optional[str] = None,
    directory: Optional[Path] = None,
) -> Path:
    """
    Write a JSON snapshot of `sessions`.

    - If `name` is None, use a timestamp-based filename.
    - Also update "sessions-latest.json" in the same directory.
    """
    directory = _ensure_dir(directory)

    if name is None:
        ts = time.strftime("%Y%m%d-%H%M%S")
        name = f"sessions-{ts}.json"

    path = directory / name
    with path.open("w", encoding="utf-8") as f:
        json.dump(snapshot_sessions(sessions), f, ensure_ascii=False)

    if path.name != LATEST_NAME:
        try:
            shutil.copy2(path, directory / LATEST_NAME)
        except OSError:
            logger.warning("Could not update %s", directory / LATEST_NAME)

    logger.info("Saved sessions snapshot to %s", path)
    return path


def load_sessions(path: Path) -> List[GraphSession]:
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a list of sessions")
    return restore_sessions(data)


def load_latest_sessions(directory: Optional[Path] = None) -> Optional[List[GraphSession]]:
    """
    Load the most recent snapshot in `directory`, or None if there is none.
    """
    directory = _ensure_dir(directory)

    latest = directory / LATEST_NAME
    if not latest.exists():
        candidates = [p for p in directory.glob("*.json") if p.is_file()]
        if not candidates:
            return None
        latest = max(candidates, key=lambda p: p.stat().st_mtime)

    return load_sessions(latest)
