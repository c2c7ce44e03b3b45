# citenet/graph/collaboration.py

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

from citenet.graph.schema import EdgeType
from citenet.models.article import Article, Author

logger = logging.getLogger("citenet.graph.collaboration")

DEFAULT_START_THRESHOLD = 2


@dataclass
class AuthorNode:
    key: str
    label: str
    publications: int
    is_source_author: bool = False
    group_key: str = ""
    affiliation: Optional[str] = None


@dataclass
class AuthorEdge:
    source: str
    target: str
    weight: int

    @property
    def collaborations(self) -> int:
        # Each shared article increments both (i, j) and (j, i).
        return self.weight // 2


@dataclass
class AuthorCollaborationGraph:
    nodes: List[AuthorNode] = field(default_factory=list)
    edges: List[AuthorEdge] = field(default_factory=list)
    chosen_threshold: int = DEFAULT_START_THRESHOLD
    graph: nx.Graph = field(default_factory=nx.Graph)


def qualifying_authors(counts: Dict[str, int], threshold: int) -> List[str]:
    return [key for key, count in counts.items() if count >= threshold]


def choose_threshold(counts: Dict[str, int], max_authors: int = 50, start: int = DEFAULT_START_THRESHOLD) -> int:
    """
    Smallest threshold >= `start` leaving at most `max_authors` qualifying authors.

    The qualifying set only shrinks as the threshold grows and is empty once it
    exceeds the highest count, so the loop always ends.
    """
    threshold = start
    ceiling = max(counts.values(), default=0) + 1
    while len(qualifying_authors(counts, threshold)) > max_authors and threshold < ceiling:
        threshold += 1
    return threshold


def _group_key(key: str, memberships: Dict[str, set]) -> str:
    parts = [name for name in ("input", "incoming", "outgoing") if key in memberships[name]]
    return "+".join(parts)


def build_collaboration_graph(
    articles: Iterable[Article],
    min_publications: Optional[int] = None,
    *,
    source: Optional[Article] = None,
    input_ids: Iterable[str] = (),
    incoming_ids: Iterable[str] = (),
    outgoing_ids: Iterable[str] = (),
    max_authors: int = 50,
) -> AuthorCollaborationGraph:
    """
    Co-authorship graph over `articles` with adaptive density control.

    Parameters
    ----------
    min_publications:
        Pinned publication threshold. If None, the threshold starts at 2 and is
        raised until at most `max_authors` authors remain.
    source:
        Seed article; its authors are flagged with `is_source_author`.
    input_ids, incoming_ids, outgoing_ids:
        Used only to derive each author's group key.
    """
    articles = [a for a in articles if a is not None]
    id_sets = {
        "input": set(input_ids),
        "incoming": set(incoming_ids),
        "outgoing": set(outgoing_ids),
    }

    per_article: List[Tuple[Article, List[str]]] = []
    authors_by_key: Dict[str, Author] = {}
    memberships: Dict[str, set] = {"input": set(), "incoming": set(), "outgoing": set()}

    for article in articles:
        keys: List[str] = []
        for author in article.authors:
            key = author.key
            if not key or key in keys:
                continue
            keys.append(key)
            authors_by_key.setdefault(key, author)
            for name, ids in id_sets.items():
                if article.id in ids:
                    memberships[name].add(key)
        per_article.append((article, keys))

    counts: Counter = Counter(key for _, keys in per_article for key in keys)

    if min_publications is None:
        threshold = choose_threshold(counts, max_authors=max_authors)
    else:
        threshold = min_publications
    qualifying = set(qualifying_authors(counts, threshold))

    logger.debug(
        "Collaboration graph: %d authors, threshold %d leaves %d",
        len(counts),
        threshold,
        len(qualifying),
    )

    pair_weights: Dict[Tuple[str, str], int] = {}
    for _, keys in per_article:
        kept = [k for k in keys if k in qualifying]
        for a in kept:
            for b in kept:
                if a == b:
                    continue
                pair = (a, b) if a < b else (b, a)
                pair_weights[pair] = pair_weights.get(pair, 0) + 1

    source_keys = {a.key for a in source.authors} if source is not None else set()

    result = AuthorCollaborationGraph(chosen_threshold=threshold)
    for key in sorted(qualifying, key=lambda k: (-counts[k], k)):
        author = authors_by_key[key]
        node = AuthorNode(
            key=key,
            label=key,
            publications=counts[key],
            is_source_author=key in source_keys,
            group_key=_group_key(key, memberships),
            affiliation=author.affiliation,
        )
        result.nodes.append(node)
        result.graph.add_node(
            key,
            label=node.label,
            publications=node.publications,
            is_source_author=node.is_source_author,
            group=node.group_key,
        )

    for (a, b), weight in pair_weights.items():
        edge = AuthorEdge(source=a, target=b, weight=weight)
        result.edges.append(edge)
        result.graph.add_edge(
            a,
            b,
            type=EdgeType.COAUTHOR.value,
            weight=weight,
            collaborations=edge.collaborations,
        )

    return result
