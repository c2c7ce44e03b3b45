# citenet/graph/adjacency.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import networkx as nx

from citenet.graph.schema import EdgeType
from citenet.models.article import Article


@dataclass
class CitationAdjacency:
    """
    Local citation structure of a session.

    referenced_by:
        id -> input-article ids whose reference lists contain it.
    citing:
        id -> ids it points to among known articles (grows as suggestions resolve).

    These two maps are the only source of degrees, ranking and node sizes.
    """

    referenced_by: Dict[str, List[str]] = field(default_factory=dict)
    citing: Dict[str, List[str]] = field(default_factory=dict)

    def in_degree(self, article_id: Optional[str]) -> int:
        if article_id is None:
            return 0
        return len(self.referenced_by.get(article_id, []))

    def out_degree(self, article_id: Optional[str]) -> int:
        if article_id is None:
            return 0
        return len(self.citing.get(article_id, []))

    def add_referenced_by(self, target_id: str, citing_id: str) -> None:
        _append_unique(self.referenced_by, target_id, citing_id)

    def add_citing(self, citing_id: str, target_id: str) -> None:
        _append_unique(self.citing, citing_id, target_id)

    def copy(self) -> "CitationAdjacency":
        return CitationAdjacency(
            referenced_by={k: list(v) for k, v in self.referenced_by.items()},
            citing={k: list(v) for k, v in self.citing.items()},
        )

    def to_networkx(self, known_ids: Optional[Iterable[str]] = None) -> nx.DiGraph:
        """
        Export the citation edges as a DiGraph (edge u -> v means u cites v).

        If `known_ids` is given, only edges between those ids are kept.
        """
        known = set(known_ids) if known_ids is not None else None
        G = nx.DiGraph()

        for target, sources in self.referenced_by.items():
            for source in sources:
                if known is None or (source in known and target in known):
                    G.add_edge(source, target, type=EdgeType.CITES.value)

        for source, targets in self.citing.items():
            for target in targets:
                if known is None or (source in known and target in known):
                    G.add_edge(source, target, type=EdgeType.CITES.value)

        return G


def _append_unique(mapping: Dict[str, List[str]], key: str, value: str) -> None:
    bucket = mapping.setdefault(key, [])
    if value not in bucket:
        bucket.append(value)


def build_adjacency(
    articles: Iterable[Article],
    input_ids: Iterable[str],
    supports_citations: bool,
    existing: Optional[CitationAdjacency] = None,
) -> CitationAdjacency:
    """
    Build or extend the adjacency maps from a set of input articles.

    Parameters
    ----------
    articles:
        Input articles (the seed's resolved references, plus the seed itself).
    input_ids:
        Ids of the input set; reference targets among them become `citing` entries.
    supports_citations:
        True when the provider exposes incoming citations directly. Each id in
        `article.citations` is then recorded as citing that article. Those keys
        are not restricted to input ids: the non-input ones are exactly the
        outgoing suggestion candidates.
    existing:
        If provided, entries are extended in place and the same object is
        returned, so edges found earlier are never dropped.
    """
    adjacency = existing if existing is not None else CitationAdjacency()
    inputs = set(input_ids)

    for article in articles:
        if not article.id:
            continue

        for ref_id in article.references:
            if not ref_id:
                continue
            adjacency.add_referenced_by(ref_id, article.id)
            if ref_id in inputs:
                adjacency.add_citing(article.id, ref_id)

        if supports_citations:
            for citing_id in article.citations or []:
                if citing_id:
                    adjacency.add_citing(citing_id, article.id)

    return adjacency
