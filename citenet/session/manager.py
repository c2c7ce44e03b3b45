# citenet/session/manager.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from citenet.config.settings import settings
from citenet.errors import SessionError
from citenet.graph.storage import save_sessions
from citenet.ingest.pipeline import ResolutionPipeline
from citenet.models.article import Article
from citenet.models.session import GraphSession

logger = logging.getLogger("citenet.session")

Observer = Callable[[GraphSession, str], None]


@dataclass
class ViewState:
    """
    Derived view of the active session: sorted tables, default selection and
    visible suggestion counts. Rebuilt from scratch on every switch.
    """

    session_index: Optional[int] = None
    input_table: List[str] = field(default_factory=list)
    incoming_table: List[str] = field(default_factory=list)
    outgoing_table: List[str] = field(default_factory=list)
    selected_id: Optional[str] = None
    visible_incoming: int = 0
    visible_outgoing: int = 0


def _year(article: Article) -> int:
    return article.year or 0


def sort_input(session: GraphSession) -> List[Article]:
    """Input table: references count, then in-degree, then year (all descending)."""
    return sorted(
        session.input,
        key=lambda a: (
            a.references_count if a.references_count is not None else len(a.references),
            session.in_degree(a.id),
            _year(a),
        ),
        reverse=True,
    )


def sort_incoming(session: GraphSession) -> List[Article]:
    """Incoming table: in-degree, then out-degree, then year (all descending)."""
    return sorted(
        session.incoming_suggestions,
        key=lambda a: (session.in_degree(a.id), session.out_degree(a.id), _year(a)),
        reverse=True,
    )


def sort_outgoing(session: GraphSession) -> List[Article]:
    """Outgoing table: out-degree, then in-degree, then year (all descending)."""
    return sorted(
        session.outgoing_suggestions,
        key=lambda a: (session.out_degree(a.id), session.in_degree(a.id), _year(a)),
        reverse=True,
    )


def build_view_state(session: Optional[GraphSession], index: Optional[int]) -> ViewState:
    if session is None:
        return ViewState()
    return ViewState(
        session_index=index,
        input_table=[a.id for a in sort_input(session) if a.id],
        incoming_table=[a.id for a in sort_incoming(session) if a.id],
        outgoing_table=[a.id for a in sort_outgoing(session) if a.id],
        selected_id=session.source.id,
        visible_incoming=session.visible_incoming_count,
        visible_outgoing=session.visible_outgoing_count,
    )


class SessionManager:
    """
    Owns the open sessions ("tabs") and which one is active.

    Sessions are identified by object identity, not by index: a pipeline
    result is applied only while `is_open(session)` holds.
    """

    def __init__(self, pipeline: ResolutionPipeline, max_sessions: Optional[int] = None) -> None:
        self.pipeline = pipeline
        self.max_sessions = max_sessions if max_sessions is not None else settings.max_sessions
        self.sessions: List[GraphSession] = []
        self.active_index: Optional[int] = None
        self.view = ViewState()
        self._observers: List[Observer] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register a checkpoint observer; returns a function that unsubscribes it."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _unsubscribe

    def _notify(self, session: GraphSession, stage: str) -> None:
        if self.active_session is session:
            self.view = build_view_state(session, self.active_index)
        for callback in list(self._observers):
            callback(session, stage)
        if settings.autosave and not session.loading:
            save_sessions(self.sessions)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    @property
    def active_session(self) -> Optional[GraphSession]:
        if self.active_index is None:
            return None
        return self.sessions[self.active_index]

    def is_open(self, session: GraphSession) -> bool:
        return any(s is session for s in self.sessions)

    def get(self, index: int) -> GraphSession:
        if not 0 <= index < len(self.sessions):
            raise SessionError(f"No open session at index {index}.", identifier=str(index))
        return self.sessions[index]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    async def create_from_seed(
        self,
        seed_id: str,
        custom_references: Optional[Sequence[Optional[str]]] = None,
        pipeline: Optional[ResolutionPipeline] = None,
    ) -> GraphSession:
        """
        Resolve `seed_id`, open a session for it and build it.

        Seed-level failures are raised (no session is opened); later stage
        failures are recorded on the session. `pipeline` replaces the default
        one for this session, e.g. to query another provider.
        """
        pipeline = pipeline or self.pipeline
        session = await pipeline.resolve_source(seed_id, custom_references)
        self.add(session)
        await pipeline.build(session, self.is_open, self._notify)
        return session

    async def create_from_identifier_list(
        self,
        identifiers: Sequence[Optional[str]],
        label: str,
        pipeline: Optional[ResolutionPipeline] = None,
    ) -> GraphSession:
        pipeline = pipeline or self.pipeline
        session = pipeline.list_session(identifiers, label)
        self.add(session)
        await pipeline.build(session, self.is_open, self._notify)
        return session

    def add(self, session: GraphSession) -> int:
        """
        Append `session` and make it active; the oldest session is evicted when
        more than `max_sessions` are open. Returns the new active index.
        """
        self.sessions.append(session)
        while len(self.sessions) > self.max_sessions:
            evicted = self.sessions.pop(0)
            logger.info("Evicting oldest session %r", evicted.label)
        self.switch_to(len(self.sessions) - 1)
        return self.active_index  # type: ignore[return-value]

    def restore(self, sessions: Sequence[GraphSession]) -> List[GraphSession]:
        """Add restored sessions, skipping any whose label is already open."""
        added = []
        for session in sessions:
            if any(s.label == session.label for s in self.sessions):
                logger.warning("Session with label %r already exists; skipping", session.label)
                continue
            session.loading = False
            self.add(session)
            added.append(session)
        return added

    # ------------------------------------------------------------------
    # Closing / switching
    # ------------------------------------------------------------------
    def close(self, index: int) -> Optional[int]:
        """
        Close the session at `index`. Closing the active session selects the
        previous one (or the new first one); returns the new active index.
        """
        closed = self.get(index)
        self.sessions.pop(index)
        logger.info("Closed session %r", closed.label)

        if not self.sessions:
            new_index: Optional[int] = None
        elif self.active_index is None:
            new_index = None
        elif index < self.active_index:
            new_index = self.active_index - 1
        elif index == self.active_index:
            new_index = max(self.active_index - 1, 0)
        else:
            new_index = self.active_index

        self.switch_to(new_index)
        return self.active_index

    def close_all(self) -> None:
        self.sessions = []
        self.switch_to(None)

    def switch_to(self, index: Optional[int]) -> ViewState:
        """Activate `index` (or nothing) and rebuild the derived view state."""
        if index is not None:
            self.get(index)
        self.active_index = index
        self.view = build_view_state(self.active_session, index)
        return self.view
