# citenet/graph/render.py

from __future__ import annotations

from typing import Dict, List, Optional

from citenet.api.models import AuthorNetwork, CitationNetwork, RenderEdge, RenderNode
from citenet.config.settings import settings
from citenet.graph.collaboration import build_collaboration_graph
from citenet.graph.schema import NodeColor, NodeShape
from citenet.models.article import Article
from citenet.models.session import GraphSession


def _label(article: Article) -> str:
    first = article.first_author
    name = first.last_name if first is not None else ""
    return f"{name}\n{article.year}"


def _group(article: Article, node_color: NodeColor) -> Optional[str]:
    if node_color == NodeColor.JOURNAL:
        return article.journal
    return str(article.year) if article.year is not None else None


def build_citation_network(
    session: GraphSession,
    show_source: bool = True,
    node_color: str = "year",
    min_degree_incoming: int = 1,
    min_degree_outgoing: int = 1,
) -> CitationNetwork:
    """
    Declarative node/edge model of the session's citation network.

    Only articles with a year take part (the layout is layered by year) and
    only articles touching at least one edge are emitted.
    """
    color = NodeColor(node_color)
    source_id = session.source.id

    inputs = [
        a for a in session.input
        if a.year is not None and a.id and (show_source or a.id != source_id)
    ]
    input_by_id: Dict[str, Article] = {a.id: a for a in inputs}

    def _degree(article: Article) -> int:
        return session.in_degree(article.id) + session.out_degree(article.id)

    incoming = [
        a for a in session.visible_incoming
        if a.year is not None and a.id not in input_by_id and _degree(a) >= min_degree_incoming
    ]
    outgoing = [
        a for a in session.visible_outgoing
        if a.year is not None and a.id not in input_by_id and _degree(a) >= min_degree_outgoing
    ]

    roles: Dict[str, NodeShape] = {}
    for article in inputs:
        roles[article.id] = NodeShape.SEED if article.id == source_id else NodeShape.INPUT
    for article in incoming:
        roles.setdefault(article.id, NodeShape.INCOMING)
    for article in outgoing:
        roles.setdefault(article.id, NodeShape.OUTGOING)

    candidates: Dict[str, Article] = {}
    for article in inputs + incoming + outgoing:
        candidates.setdefault(article.id, article)

    connected: Dict[str, Article] = {}
    edges: List[RenderEdge] = []
    seen_edges = set()

    def _add_edge(from_id: str, to_id: str) -> None:
        if (from_id, to_id) in seen_edges:
            return
        seen_edges.add((from_id, to_id))
        edges.append(RenderEdge(from_id=from_id, to_id=to_id))
        connected[from_id] = candidates[from_id]
        connected[to_id] = candidates[to_id]

    # Input article -> every shown article it references.
    for article in candidates.values():
        for from_id in session.referenced_by.get(article.id, []):
            if from_id in input_by_id:
                _add_edge(from_id, article.id)

    # Suggestion -> input articles it cites.
    for article in incoming + outgoing:
        for to_id in session.citing.get(article.id, []):
            if to_id in input_by_id:
                _add_edge(article.id, to_id)

    years = sorted({a.year for a in connected.values()})

    nodes = [
        RenderNode(
            id=article.id,
            label=_label(article),
            group_key=_group(article, color),
            level_key=years.index(article.year),
            size_weight=_degree(article),
            shape_key=roles[article.id].value,
        )
        for article in connected.values()
    ]

    return CitationNetwork(nodes=nodes, edges=edges)


def build_author_network(
    session: GraphSession,
    min_publications: Optional[int] = None,
    include_suggestions: bool = True,
) -> AuthorNetwork:
    """
    Co-authorship network over the session's input (and visible suggestions).

    `min_publications` falls back to the value pinned on the session.
    """
    articles = list(session.input)
    if include_suggestions:
        articles += session.visible_incoming + session.visible_outgoing

    pinned = min_publications if min_publications is not None else session.collaboration_min_publications
    collab = build_collaboration_graph(
        articles,
        pinned,
        source=None if session.is_list_based else session.source,
        input_ids=session.input_ids,
        incoming_ids=session.incoming_ids,
        outgoing_ids=session.outgoing_ids,
        max_authors=settings.collaboration_max_authors,
    )

    nodes = [
        RenderNode(
            id=key,
            label=data["label"],
            group_key=data["group"],
            size_weight=data["publications"],
            shape_key="source_author" if data["is_source_author"] else "author",
        )
        for key, data in collab.graph.nodes(data=True)
    ]
    edges = [
        RenderEdge(
            from_id=u,
            to_id=v,
            weight=data["weight"],
            collaborations=data["collaborations"],
        )
        for u, v, data in collab.graph.edges(data=True)
    ]
    return AuthorNetwork(nodes=nodes, edges=edges, chosen_threshold=collab.chosen_threshold)
