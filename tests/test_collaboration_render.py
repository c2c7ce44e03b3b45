# tests/test_collaboration_render.py

import asyncio

import pytest

from citenet.config.settings import ProviderName
from citenet.graph.collaboration import build_collaboration_graph, choose_threshold, qualifying_authors
from citenet.graph.render import build_author_network, build_citation_network
from citenet.ingest.pipeline import ResolutionPipeline
from citenet.models.article import Article, Author
from citenet.models.session import GraphSession


def _paper(article_id, *names):
    return Article(id=article_id, authors=[Author.from_display_name(n) for n in names], year=2000)


def test_choose_threshold_raises_until_small_enough():
    counts = {"a": 5, "b": 3, "c": 2, "d": 2}

    assert choose_threshold(counts, max_authors=10) == 2
    assert choose_threshold(counts, max_authors=2) == 3
    assert choose_threshold(counts, max_authors=1) == 4


def test_choose_threshold_terminates_when_nothing_fits():
    counts = {"a": 2, "b": 2, "c": 2}

    threshold = choose_threshold(counts, max_authors=0)

    assert threshold == 3
    assert qualifying_authors(counts, threshold) == []
    assert choose_threshold({}, max_authors=0) == 2


def test_qualifying_set_shrinks_as_threshold_grows():
    counts = {"a": 5, "b": 3, "c": 2, "d": 1}

    sizes = [len(qualifying_authors(counts, t)) for t in range(1, 7)]

    assert sizes == sorted(sizes, reverse=True)


def test_edge_weight_counts_both_directions():
    papers = [
        _paper("1", "Ann Smith", "Bob Jones"),
        _paper("2", "Ann Smith", "Bob Jones", "Cy Young"),
        _paper("3", "Cy Young"),
    ]

    graph = build_collaboration_graph(papers)

    assert graph.chosen_threshold == 2
    assert [n.key for n in graph.nodes] == ["Ann Smith", "Bob Jones", "Cy Young"]
    weights = {(e.source, e.target): e.weight for e in graph.edges}
    assert weights[("Ann Smith", "Bob Jones")] == 4
    assert weights[("Ann Smith", "Cy Young")] == 2
    assert {e.collaborations for e in graph.edges if e.source == "Ann Smith"} == {2, 1}
    assert graph.graph["Ann Smith"]["Bob Jones"]["collaborations"] == 2


def test_pinned_threshold_is_used_as_is():
    papers = [_paper("1", "Ann Smith", "Bob Jones"), _paper("2", "Ann Smith")]

    graph = build_collaboration_graph(papers, min_publications=1)

    assert graph.chosen_threshold == 1
    assert {n.key for n in graph.nodes} == {"Ann Smith", "Bob Jones"}


def test_source_authors_and_groups_are_marked():
    source = _paper("S", "Ann Smith")
    papers = [source, _paper("1", "Ann Smith", "Bob Jones"), _paper("2", "Bob Jones")]

    graph = build_collaboration_graph(
        papers,
        source=source,
        input_ids=["S", "1"],
        incoming_ids=["2"],
    )

    by_key = {n.key: n for n in graph.nodes}
    assert by_key["Ann Smith"].is_source_author is True
    assert by_key["Bob Jones"].is_source_author is False
    assert by_key["Bob Jones"].group_key == "input+incoming"


@pytest.fixture
def built_session(make_provider):
    pipeline = ResolutionPipeline(make_provider())

    async def _run():
        session = await pipeline.resolve_source("SEED")
        await pipeline.build(session)
        return session

    return asyncio.run(_run())


def test_citation_network_has_no_singletons(built_session):
    network = build_citation_network(built_session)

    ids = {n.id for n in network.nodes}
    endpoints = {e.from_id for e in network.edges} | {e.to_id for e in network.edges}
    assert ids == endpoints
    assert ids == {"SEED", "A", "B", "C", "R1", "R2", "X", "Y"}


def test_citation_network_roles_levels_and_sizes(built_session):
    network = build_citation_network(built_session)
    nodes = {n.id: n for n in network.nodes}

    assert nodes["SEED"].shape_key == "seed"
    assert nodes["A"].shape_key == "input"
    assert nodes["R1"].shape_key == "incoming"
    assert nodes["X"].shape_key == "outgoing"
    # Years present: 1990, 1995, 2003, 2004, 2005, 2010, 2015, 2016.
    assert nodes["R1"].level_key == 0
    assert nodes["Y"].level_key == 7
    assert nodes["R1"].size_weight == 3
    assert nodes["R1"].label == "R1\n1990"
    assert nodes["A"].group_key == "2005"


def test_citation_network_edges_point_from_citing_to_cited(built_session):
    network = build_citation_network(built_session)
    edges = {(e.from_id, e.to_id) for e in network.edges}

    assert ("A", "R1") in edges
    assert ("SEED", "A") in edges
    assert ("X", "SEED") in edges
    assert ("Y", "C") in edges
    assert all(f != t for f, t in edges)


def test_citation_network_can_hide_source_and_color_by_journal(built_session):
    network = build_citation_network(built_session, show_source=False, node_color="journal")

    ids = {n.id for n in network.nodes}
    assert "SEED" not in ids
    assert {n.group_key for n in network.nodes} == {"Journal of Tests"}


def test_visible_slice_limits_suggestions(built_session):
    built_session.set_visible_suggestions(incoming=1, outgoing=0)

    ids = {n.id for n in build_citation_network(built_session).nodes}

    assert "R1" in ids
    assert "R2" not in ids
    assert not {"X", "Y"} & ids


def test_render_payload_uses_from_and_to_keys(built_session):
    payload = build_citation_network(built_session).model_dump(by_alias=True)

    assert set(payload["edges"][0]) >= {"from", "to"}


def test_author_network_marks_source_authors(built_session):
    network = build_author_network(built_session)
    nodes = {n.id: n for n in network.nodes}

    assert network.chosen_threshold == 2
    assert nodes["Ann Smith"].shape_key == "source_author"
    assert nodes["Carl Berg"].shape_key == "author"
    assert nodes["Ann Smith"].size_weight == 3


def test_author_network_edges_come_from_the_coauthor_graph(built_session):
    network = build_author_network(built_session)

    [edge] = network.edges
    assert {edge.from_id, edge.to_id} == {"Ann Smith", "Carl Berg"}
    # Shared on A and B, counted once per direction.
    assert edge.weight == 4
    assert edge.collaborations == 2
    assert [n.id for n in network.nodes] == ["Ann Smith", "Carl Berg"]


def test_author_network_for_list_session_has_no_source_authors():
    session_source = Article(id=None, title="list", references=["A"])

    session = GraphSession(
        source=session_source,
        api=ProviderName.OPENALEX,
        input=[_paper("A", "Ann Smith"), _paper("B", "Ann Smith")],
    )

    network = build_author_network(session)

    assert [n.shape_key for n in network.nodes] == ["author"]
