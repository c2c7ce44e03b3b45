# tests/test_pipeline.py

import asyncio

import pytest

from citenet.config.settings import ProviderName
from citenet.errors import InvalidIdentifier, NoReferenceData, NotFound
from citenet.ingest.pipeline import STAGE_DONE, STAGE_INPUT, ResolutionPipeline

from conftest import s2_record, scenario_records


def _build(pipeline, seed="SEED", **kwargs):
    async def _run():
        session = await pipeline.resolve_source(seed)
        await pipeline.build(session, **kwargs)
        return session

    return asyncio.run(_run())


def test_resolve_source_labels_and_flags_seed(make_provider):
    pipeline = ResolutionPipeline(make_provider())

    session = asyncio.run(pipeline.resolve_source("seed"))

    assert session.source.id == "SEED"
    assert session.source.is_source is True
    assert session.label == "Smith 2010"
    assert session.loading is True
    assert session.api == ProviderName.SEMANTIC_SCHOLAR


def test_resolve_source_errors(make_provider):
    records = scenario_records()
    records["LONELY"] = s2_record("LONELY", references=[])
    pipeline = ResolutionPipeline(make_provider(records))

    with pytest.raises(NotFound):
        asyncio.run(pipeline.resolve_source("MISSING"))
    with pytest.raises(NoReferenceData):
        asyncio.run(pipeline.resolve_source("LONELY"))
    with pytest.raises(InvalidIdentifier):
        asyncio.run(pipeline.resolve_source("   "))


def test_build_resolves_input_and_both_suggestion_lists(make_provider):
    pipeline = ResolutionPipeline(make_provider())
    stages = []

    session = _build(pipeline, checkpoint=lambda s, stage: stages.append(stage))

    assert session.loading is False
    assert session.errors == []
    assert sorted(session.input_ids) == ["A", "B", "C", "SEED"]
    assert session.incoming_ids == ["R1", "R2"]
    assert session.outgoing_ids == ["X", "Y"]

    assert {a.id: a.number_in_source_references for a in session.input if not a.is_source} == {
        "A": 1,
        "B": 2,
        "C": 3,
    }

    assert session.in_degree("R1") == 3
    assert session.in_degree("R2") == 2
    assert session.out_degree("X") == 3
    assert session.out_degree("Y") == 3
    assert stages[0] == STAGE_INPUT
    assert stages[-1] == STAGE_DONE
    assert set(stages) == {"input", "incoming", "outgoing", "done"}


def test_suggestions_are_disjoint_from_input(make_provider):
    session = _build(ResolutionPipeline(make_provider()))

    input_ids = set(session.input_ids)
    incoming = set(session.incoming_ids)
    outgoing = set(session.outgoing_ids)

    assert not input_ids & incoming
    assert not input_ids & outgoing
    assert not incoming & outgoing


def test_without_citation_feed_outgoing_is_empty_and_citing_is_backfilled(make_provider):
    pipeline = ResolutionPipeline(make_provider(supports_citations=False))

    session = _build(pipeline)

    assert session.outgoing_suggestions == []
    assert session.incoming_ids == ["R1", "R2"]
    # R2 references A, which is an input article.
    assert session.citing["R2"] == ["A"]
    assert "R1" not in session.citing


def test_custom_reference_list_replaces_source_references(make_provider):
    pipeline = ResolutionPipeline(make_provider())

    async def _run():
        session = await pipeline.resolve_source("SEED", custom_references=["a", None, "c"])
        await pipeline.build(session)
        return session

    session = asyncio.run(_run())

    assert session.source.custom_list_of_references == ["a", None, "c"]
    assert session.source.references == ["A", "C"]
    assert sorted(session.input_ids) == ["A", "C", "SEED"]


def test_list_session_has_pseudo_source(make_provider):
    pipeline = ResolutionPipeline(make_provider())

    async def _run():
        session = pipeline.list_session(["A", "B", "", "C"], "my list")
        await pipeline.build(session)
        return session

    session = asyncio.run(_run())

    assert session.is_list_based
    assert session.source.id is None
    assert session.label == "my list"
    assert sorted(session.input_ids) == ["A", "B", "C"]
    assert session.incoming_ids == ["R1", "R2"]


def test_empty_identifier_list_is_rejected(make_provider):
    pipeline = ResolutionPipeline(make_provider())

    with pytest.raises(NoReferenceData):
        pipeline.list_session(["", None], "empty")


def test_input_batch_failure_is_recorded_and_loading_cleared(make_provider):
    pipeline = ResolutionPipeline(make_provider(fail_on=["A"]))

    session = _build(pipeline)

    assert session.loading is False
    assert session.input == []
    assert len(session.errors) == 1
    assert "429" in session.errors[0]


def test_suggestion_stage_failure_keeps_other_stage(make_provider):
    pipeline = ResolutionPipeline(make_provider(fail_on=["X"]))

    session = _build(pipeline)

    assert session.loading is False
    assert session.incoming_ids == ["R1", "R2"]
    assert session.outgoing_suggestions == []
    assert any(e.startswith("Outgoing suggestions") for e in session.errors)


def test_missing_records_are_reported_per_id(make_provider):
    records = scenario_records()
    del records["C"]
    pipeline = ResolutionPipeline(make_provider(records))

    session = _build(pipeline)

    assert sorted(session.input_ids) == ["A", "B", "SEED"]
    assert any("C" in e for e in session.errors)


def test_results_for_a_closed_session_are_discarded(make_provider):
    pipeline = ResolutionPipeline(make_provider())
    notified = []

    session = asyncio.run(pipeline.resolve_source("SEED"))
    asyncio.run(
        pipeline.build(
            session,
            is_current=lambda s: False,
            checkpoint=lambda s, stage: notified.append(stage),
        )
    )

    assert session.input == []
    assert session.loading is False
    assert notified == []
