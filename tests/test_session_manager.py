# tests/test_session_manager.py

import asyncio

import pytest

from citenet.config.settings import ProviderName
from citenet.errors import SessionError
from citenet.ingest.pipeline import STAGE_INPUT
from citenet.models.article import Article
from citenet.models.session import GraphSession
from citenet.session.manager import sort_incoming, sort_input


def _session(label: str) -> GraphSession:
    return GraphSession(
        source=Article(id=label.upper(), title=label, is_source=True),
        api=ProviderName.OPENALEX,
        label=label,
    )


def test_add_activates_and_evicts_oldest(make_manager):
    manager = make_manager(max_sessions=2)
    a, b, c = _session("a"), _session("b"), _session("c")

    manager.add(a)
    manager.add(b)
    index = manager.add(c)

    assert manager.sessions == [b, c]
    assert index == 1
    assert manager.active_session is c
    assert not manager.is_open(a)


def test_close_active_selects_previous(make_manager):
    manager = make_manager()
    for label in ("a", "b", "c"):
        manager.add(_session(label))
    manager.switch_to(1)

    assert manager.close(1) == 0
    assert [s.label for s in manager.sessions] == ["a", "c"]
    assert manager.active_session.label == "a"


def test_close_first_active_keeps_first(make_manager):
    manager = make_manager()
    manager.add(_session("a"))
    manager.add(_session("b"))
    manager.switch_to(0)

    assert manager.close(0) == 0
    assert manager.active_session.label == "b"


def test_close_before_active_shifts_index(make_manager):
    manager = make_manager()
    for label in ("a", "b", "c"):
        manager.add(_session(label))

    assert manager.close(0) == 1
    assert manager.active_session.label == "c"


def test_close_last_session_leaves_nothing_active(make_manager):
    manager = make_manager()
    manager.add(_session("a"))

    assert manager.close(0) is None
    assert manager.active_session is None
    assert manager.view.session_index is None


def test_close_unknown_index_raises(make_manager):
    manager = make_manager()

    with pytest.raises(SessionError):
        manager.close(3)


def test_close_all(make_manager):
    manager = make_manager()
    manager.add(_session("a"))
    manager.add(_session("b"))

    manager.close_all()

    assert manager.sessions == []
    assert manager.active_index is None


def test_restore_skips_duplicate_labels(make_manager):
    manager = make_manager()
    manager.add(_session("a"))

    added = manager.restore([_session("a"), _session("b")])

    assert [s.label for s in added] == ["b"]
    assert [s.label for s in manager.sessions] == ["a", "b"]


def test_create_from_seed_builds_view(make_manager):
    manager = make_manager()
    stages = []
    unsubscribe = manager.subscribe(lambda s, stage: stages.append(stage))

    session = asyncio.run(manager.create_from_seed("SEED"))
    unsubscribe()

    assert manager.active_session is session
    assert manager.view.selected_id == "SEED"
    assert manager.view.incoming_table == ["R1", "R2"]
    assert manager.view.visible_incoming == 2
    assert stages[-1] == "done"
    # A and the seed both list three references; the seed cites A.
    assert manager.view.input_table[0] == "A"


def test_switch_resets_selection_to_source(make_manager):
    manager = make_manager()
    first = asyncio.run(manager.create_from_seed("SEED"))
    manager.view.selected_id = "R1"
    manager.add(_session("other"))

    view = manager.switch_to(0)

    assert view.selected_id == first.source.id
    assert view.session_index == 0


def test_closing_during_build_discards_late_results(make_manager):
    manager = make_manager()
    connector = manager.pipeline.provider.connector
    connector.on_fetch = lambda ids: manager.close_all() if "R1" in ids else None

    session = asyncio.run(manager.create_from_seed("SEED"))

    assert manager.sessions == []
    assert session.incoming_suggestions == []
    assert session.loading is False


def test_sort_orders_follow_degrees(make_manager):
    manager = make_manager()
    session = asyncio.run(manager.create_from_seed("SEED"))

    assert [a.id for a in sort_incoming(session)] == ["R1", "R2"]
    assert sort_input(session)[0].id == "A"


def test_visible_slice_chosen_while_loading_applies_once_suggestions_arrive(make_manager):
    manager = make_manager()

    def _pick_slices(session, stage):
        if stage == STAGE_INPUT:
            assert session.incoming_suggestions == []
            session.set_visible_suggestions(incoming=1, outgoing=5)

    manager.subscribe(_pick_slices)
    session = asyncio.run(manager.create_from_seed("SEED"))

    assert session.incoming_ids == ["R1", "R2"]
    assert session.visible_incoming_count == 1
    assert [a.id for a in session.visible_incoming] == ["R1"]
    # Larger than the candidate list: clamped on read, not on write.
    assert session.max_outgoing_suggestions == 5
    assert session.visible_outgoing_count == len(session.outgoing_suggestions)


def test_set_visible_suggestions_rejects_negative_sizes():
    session = _session("a")
    session.incoming_suggestions = [Article(id="I1"), Article(id="I2")]

    session.set_visible_suggestions(incoming=-3)

    assert session.max_incoming_suggestions == 0
    assert session.visible_incoming == []
