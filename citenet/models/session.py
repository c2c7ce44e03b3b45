# citenet/models/session.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from citenet.config.settings import ProviderName, settings
from citenet.graph.adjacency import CitationAdjacency
from citenet.models.article import Article


@dataclass
class GraphSession:
    """
    One exploration tab.

    `source` is the seed article; for sessions created from an identifier list it
    is a pseudo-source with `id=None` whose references are the list itself.
    The object is mutated in place by the pipeline and never replaced.
    """

    source: Article
    api: ProviderName
    input: List[Article] = field(default_factory=list)
    incoming_suggestions: List[Article] = field(default_factory=list)
    outgoing_suggestions: List[Article] = field(default_factory=list)
    adjacency: CitationAdjacency = field(default_factory=CitationAdjacency)

    created_at: float = field(default_factory=time.time)
    label: str = ""
    title: str = ""
    loading: bool = False
    errors: List[str] = field(default_factory=list)

    max_incoming_suggestions: Optional[int] = None
    max_outgoing_suggestions: Optional[int] = None
    collaboration_min_publications: Optional[int] = None

    # ------------------------------------------------------------------
    # Adjacency views
    # ------------------------------------------------------------------
    @property
    def referenced_by(self) -> Dict[str, List[str]]:
        return self.adjacency.referenced_by

    @property
    def citing(self) -> Dict[str, List[str]]:
        return self.adjacency.citing

    def in_degree(self, article_id: Optional[str]) -> int:
        return self.adjacency.in_degree(article_id)

    def out_degree(self, article_id: Optional[str]) -> int:
        return self.adjacency.out_degree(article_id)

    # ------------------------------------------------------------------
    # Id sets
    # ------------------------------------------------------------------
    @property
    def is_list_based(self) -> bool:
        return self.source.id is None

    @property
    def input_ids(self) -> List[str]:
        return [a.id for a in self.input if a.id]

    @property
    def incoming_ids(self) -> List[str]:
        return [a.id for a in self.incoming_suggestions if a.id]

    @property
    def outgoing_ids(self) -> List[str]:
        return [a.id for a in self.outgoing_suggestions if a.id]

    # ------------------------------------------------------------------
    # Visible suggestion slices
    # ------------------------------------------------------------------
    @staticmethod
    def _slice_size(requested: Optional[int], available: int) -> int:
        if requested is None:
            return min(settings.default_visible_suggestions, available)
        return max(0, min(requested, available))

    @property
    def visible_incoming_count(self) -> int:
        return self._slice_size(self.max_incoming_suggestions, len(self.incoming_suggestions))

    @property
    def visible_outgoing_count(self) -> int:
        return self._slice_size(self.max_outgoing_suggestions, len(self.outgoing_suggestions))

    @property
    def visible_incoming(self) -> List[Article]:
        return self.incoming_suggestions[: self.visible_incoming_count]

    @property
    def visible_outgoing(self) -> List[Article]:
        return self.outgoing_suggestions[: self.visible_outgoing_count]

    def set_visible_suggestions(self, incoming: Optional[int] = None, outgoing: Optional[int] = None) -> None:
        """
        Adjust the visible slices. Order is untouched.

        The requested size is kept as is and clamped to the number of candidates
        on read, so a size chosen while suggestions are still loading applies
        once they arrive.
        """
        if incoming is not None:
            self.max_incoming_suggestions = max(0, incoming)
        if outgoing is not None:
            self.max_outgoing_suggestions = max(0, outgoing)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    @property
    def known_articles(self) -> List[Article]:
        """Input plus all resolved suggestions, without duplicates."""
        seen = set()
        out = []
        for article in self.input + self.incoming_suggestions + self.outgoing_suggestions:
            if article.id and article.id not in seen:
                seen.add(article.id)
                out.append(article)
        return out

    @property
    def known_ids(self) -> List[str]:
        return [a.id for a in self.known_articles]

    def add_error(self, message: str) -> None:
        self.errors.append(message)
