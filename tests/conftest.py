# tests/conftest.py

from typing import Any, Callable, Dict, List, Optional

import pytest

from citenet.config.settings import ProviderName, settings
from citenet.errors import ProviderRequestFailed
from citenet.ingest.pipeline import ResolutionPipeline
from citenet.providers.base import SemanticScholarResponse, SourceConnector
from citenet.providers.registry import Provider
from citenet.providers.semantic_scholar import SemanticScholarNormalizer
from citenet.session.manager import SessionManager
from citenet.web.security import reset_rate_limits


def s2_record(
    paper_id: str,
    *,
    year: Optional[int] = 2000,
    authors: Optional[List[str]] = None,
    references: Optional[List[Optional[str]]] = None,
    citations: Optional[List[str]] = None,
    title: Optional[str] = None,
) -> Dict[str, Any]:
    """Semantic Scholar shaped record."""
    record: Dict[str, Any] = {
        "paperId": paper_id,
        "title": title or f"Paper {paper_id}",
        "year": year,
        "venue": "Journal of Tests",
        "authors": [{"name": name} for name in (authors or [f"Author {paper_id}"])],
        "references": [{"paperId": r} for r in references or []],
        "referenceCount": len(references or []),
        "citationCount": len(citations or []),
    }
    if citations is not None:
        record["citations"] = [{"paperId": c} for c in citations]
    return record


def scenario_records() -> Dict[str, Dict[str, Any]]:
    """
    SEED references A, B and C.

    R1 is referenced by A, B and C and R2 by A and B (incoming candidates).
    X cites SEED, A and B and Y cites A, B and C (outgoing candidates).
    """
    return {
        "SEED": s2_record("SEED", year=2010, authors=["Ann Smith", "Bob Jones"],
                          references=["A", "B", "C"], citations=["X"]),
        "A": s2_record("A", year=2005, authors=["Ann Smith", "Carl Berg"],
                       references=["B", "R1", "R2"], citations=["X", "Y"]),
        "B": s2_record("B", year=2003, authors=["Ann Smith", "Carl Berg"],
                       references=["R1", "R2"], citations=["X", "Y"]),
        "C": s2_record("C", year=2004, references=["R1", None], citations=["Y"]),
        "R1": s2_record("R1", year=1990, references=[]),
        "R2": s2_record("R2", year=1995, references=["A"]),
        "X": s2_record("X", year=2015, references=["SEED", "A", "B"]),
        "Y": s2_record("Y", year=2016, references=["A", "B", "C"]),
    }


class FakeConnector(SourceConnector):
    """
    In-memory connector answering from a dict of records.

    `on_fetch` is called with the query ids of every chunk; `fail_on` makes
    any chunk containing one of its ids fail as a batch.
    """

    name = ProviderName.SEMANTIC_SCHOLAR
    response_type = SemanticScholarResponse

    def __init__(
        self,
        records: Dict[str, Dict[str, Any]],
        *,
        supports_citations: bool = True,
        on_fetch: Optional[Callable[[List[str]], None]] = None,
        fail_on: Optional[List[str]] = None,
    ) -> None:
        super().__init__(max_retries=1, backoff_seconds=0)
        self.records = records
        self.supports_citations = supports_citations
        self.on_fetch = on_fetch
        self.fail_on = set(fail_on or [])
        self.calls: List[List[str]] = []

    def format_id(self, identifier: str) -> str:
        return identifier.upper()

    def _fetch_chunk(self, query_ids: List[str], with_citations: bool) -> Dict[str, Dict[str, Any]]:
        self.calls.append(list(query_ids))
        if self.on_fetch is not None:
            self.on_fetch(query_ids)
        if self.fail_on & set(query_ids):
            raise ProviderRequestFailed("HTTP 429: slow down", status_code=429, url="fake://batch")
        found = {}
        for q in query_ids:
            record = self.records.get(q)
            if record is None:
                continue
            record = dict(record)
            if not with_citations:
                record.pop("citations", None)
            found[q] = record
        return found


@pytest.fixture
def make_provider():
    def _make(records=None, **kwargs) -> Provider:
        connector = FakeConnector(scenario_records() if records is None else records, **kwargs)
        return Provider(
            name=ProviderName.SEMANTIC_SCHOLAR,
            connector=connector,
            normalizer=SemanticScholarNormalizer(),
        )

    return _make


@pytest.fixture
def make_manager(make_provider):
    def _make(records=None, max_sessions=None, **kwargs) -> SessionManager:
        pipeline = ResolutionPipeline(make_provider(records, **kwargs))
        return SessionManager(pipeline, max_sessions=max_sessions)

    return _make


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point every settings-derived directory at a temporary location."""
    monkeypatch.setattr(settings, "DATA_DIR", tmp_path)
    monkeypatch.setattr(settings, "autosave", False)
    return tmp_path


@pytest.fixture(autouse=True)
def _fresh_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
