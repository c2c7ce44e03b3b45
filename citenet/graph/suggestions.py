# citenet/graph/suggestions.py

from __future__ import annotations

from typing import Dict, Iterable, List

from citenet.graph.adjacency import CitationAdjacency
from citenet.models.article import Article


def _rank(mapping: Dict[str, List[str]], excluded: set, cap: int) -> List[str]:
    candidates = [
        key for key, values in mapping.items()
        if len(values) > 1 and key not in excluded
    ]
    # sorted() is stable, so equal counts keep dict (encounter) order.
    candidates = sorted(candidates, key=lambda key: len(mapping[key]), reverse=True)
    return candidates[: max(cap, 0)]


def select_incoming(
    referenced_by: Dict[str, List[str]],
    input_ids: Iterable[str],
    cap: int = 20,
) -> List[str]:
    """
    Ids referenced by more than one input article that are not inputs
    themselves, most co-cited first.
    """
    return _rank(referenced_by, set(input_ids), cap)


def select_outgoing(
    citing: Dict[str, List[str]],
    input_ids: Iterable[str],
    incoming_ids: Iterable[str],
    cap: int = 20,
) -> List[str]:
    """
    Ids citing more than one input article, excluding inputs and anything
    already chosen as an incoming suggestion.
    """
    return _rank(citing, set(input_ids) | set(incoming_ids), cap)


def backfill_citing(
    adjacency: CitationAdjacency,
    suggestions: Iterable[Article],
    known_ids: Iterable[str],
) -> CitationAdjacency:
    """
    For providers without a citation feed: record each suggestion's own
    references to known articles as its `citing` edges.
    """
    known = set(known_ids)
    for article in suggestions:
        if not article.id:
            continue
        for ref_id in article.references:
            if ref_id and ref_id in known:
                adjacency.add_citing(article.id, ref_id)
    return adjacency
