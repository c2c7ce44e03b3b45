# citenet/graph/io.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import networkx as nx

from citenet.graph.schema import NodeShape
from citenet.models.session import GraphSession

logger = logging.getLogger("citenet.graph.io")

PathLike = Union[str, Path]


def _role(session: GraphSession, article_id: str) -> NodeShape:
    if article_id == session.source.id:
        return NodeShape.SEED
    if article_id in session.input_ids:
        return NodeShape.INPUT
    if article_id in session.incoming_ids:
        return NodeShape.INCOMING
    return NodeShape.OUTGOING


def citation_graph(session: GraphSession) -> nx.DiGraph:
    """
    Citation digraph of every known article in `session` (edge u -> v means u cites v).

    Node attributes are limited to strings and ints so the graph can be written
    as GraphML. Missing values are left out.
    """
    G = session.adjacency.to_networkx(session.known_ids)

    for article in session.known_articles:
        attrs = {
            "title": article.title,
            "role": _role(session, article.id).value,
            "in_degree": session.in_degree(article.id),
            "out_degree": session.out_degree(article.id),
        }
        if article.year is not None:
            attrs["year"] = article.year
        if article.doi:
            attrs["doi"] = article.doi
        if article.journal:
            attrs["journal"] = article.journal
        first = article.first_author
        if first is not None:
            attrs["first_author"] = first.last_name
        G.add_node(article.id, **attrs)

    return G


def save_graph(
    graph: nx.Graph,
    path: PathLike,
    overwrite: bool = True,
) -> Path:
    """
    Write a NetworkX graph as GraphML.

    - If `path` has no suffix, `.graphml` is appended.
    - Creates parent directories if needed.
    - If `overwrite` is False and the file already exists, raises FileExistsError.
    """
    output_path = Path(path)
    if output_path.suffix == "":
        output_path = output_path.with_suffix(".graphml")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"Graph file already exists and overwrite=False: {output_path}")

    nx.write_graphml(graph, output_path)
    logger.info(
        "Wrote graph with %d nodes and %d edges to %s",
        graph.number_of_nodes(),
        graph.number_of_edges(),
        output_path,
    )
    return output_path
