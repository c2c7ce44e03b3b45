# tests/test_graph_io.py

import asyncio

import networkx as nx
import pytest

from citenet.graph.io import citation_graph, save_graph
from citenet.ingest.pipeline import ResolutionPipeline


@pytest.fixture
def built_session(make_provider):
    pipeline = ResolutionPipeline(make_provider())

    async def _run():
        session = await pipeline.resolve_source("SEED")
        await pipeline.build(session)
        return session

    return asyncio.run(_run())


def test_citation_graph_covers_known_articles(built_session):
    G = citation_graph(built_session)

    assert isinstance(G, nx.DiGraph)
    assert set(G.nodes) == set(built_session.known_ids)
    assert G.has_edge("SEED", "A")
    assert G.has_edge("A", "R1")
    assert G.has_edge("X", "SEED")
    assert G.nodes["SEED"]["role"] == "seed"
    assert G.nodes["R1"]["role"] == "incoming"
    assert G.nodes["Y"]["role"] == "outgoing"
    assert G.nodes["R1"]["in_degree"] == 3
    assert G.nodes["A"]["year"] == 2005


def test_save_graph_writes_graphml(tmp_path, built_session):
    G = citation_graph(built_session)

    out_path = save_graph(G, tmp_path / "nested" / "network")

    assert out_path.suffix == ".graphml"
    assert out_path.exists()

    loaded = nx.read_graphml(out_path)
    assert set(loaded.nodes) == set(G.nodes)
    assert set(loaded.edges) == set(G.edges)
    assert loaded.nodes["A"]["title"] == G.nodes["A"]["title"]


def test_save_graph_no_overwrite(tmp_path):
    G = nx.DiGraph()
    G.add_edge("A", "B")
    path = save_graph(G, tmp_path / "g.graphml")

    with pytest.raises(FileExistsError):
        save_graph(G, path, overwrite=False)
