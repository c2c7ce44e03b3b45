# citenet/ingest/pipeline.py

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from starlette.concurrency import run_in_threadpool

from citenet.config.settings import settings
from citenet.errors import CitenetError, NoReferenceData, NotFound
from citenet.graph.adjacency import build_adjacency
from citenet.graph.suggestions import backfill_citing, select_incoming, select_outgoing
from citenet.ingest.identifiers import validate_identifier_list, validate_seed
from citenet.models.article import Article
from citenet.models.session import GraphSession
from citenet.providers.base import RawResponse

if TYPE_CHECKING:
    from citenet.providers.registry import Provider

logger = logging.getLogger("citenet.ingest.pipeline")

# Stage names passed to checkpoint observers.
STAGE_INPUT = "input"
STAGE_INCOMING = "incoming"
STAGE_OUTGOING = "outgoing"
STAGE_DONE = "done"

IsCurrent = Callable[[GraphSession], bool]
Checkpoint = Callable[[GraphSession, str], None]


def _unique(ids: Sequence[Optional[str]]) -> List[str]:
    out: List[str] = []
    for i in ids:
        if i and i not in out:
            out.append(i)
    return out


def _in_order(articles: List[Article], ids: Sequence[str]) -> List[Article]:
    rank = {article_id: position for position, article_id in enumerate(ids)}
    return sorted(articles, key=lambda a: rank.get(a.id, len(rank)))


class ResolutionPipeline:
    """
    Staged resolution of one session:

        seed -> input -> adjacency -> (incoming || outgoing)

    Each stage is a single batched provider call run in a worker thread. The
    session is updated in place at every checkpoint, and results for a session
    that is no longer open are dropped.
    """

    def __init__(self, provider: Provider, *, suggestion_cap: Optional[int] = None) -> None:
        self.provider = provider
        self.suggestion_cap = suggestion_cap if suggestion_cap is not None else settings.suggestion_cap

    @property
    def supports_citations(self) -> bool:
        return self.provider.supports_citations

    async def _fetch(self, ids: Sequence[Optional[str]], with_citations: bool = False) -> RawResponse:
        return await run_in_threadpool(self.provider.connector.fetch_by_ids, list(ids), with_citations)

    def _normalize(
        self,
        raw: RawResponse,
        session: Optional[GraphSession] = None,
        source_reference_order: Optional[Sequence[Optional[str]]] = None,
    ) -> List[Article]:
        errors: List[CitenetError] = []
        articles = self.provider.normalizer.normalize(
            raw,
            source_reference_order=source_reference_order,
            errors=errors,
        )
        if session is not None:
            for error in errors:
                session.add_error(str(error))
        return articles

    # ------------------------------------------------------------------
    # Session creation
    # ------------------------------------------------------------------
    async def resolve_source(
        self,
        seed_id: str,
        custom_references: Optional[Sequence[Optional[str]]] = None,
    ) -> GraphSession:
        """
        Resolve the seed and return a new session in loading state.

        Raises InvalidIdentifier, NotFound, NoReferenceData or ProviderRequestFailed;
        no session exists yet at this point.
        """
        api = self.provider.name
        seed = validate_seed(seed_id, api)

        raw = await self._fetch([seed], with_citations=self.supports_citations)
        articles = self._normalize(raw)
        if not articles:
            raise NotFound(
                f"Empty response from {api.value} for {seed}, maybe source not found. Try another provider.",
                identifier=seed,
            )

        source = articles[0]
        source.is_source = True
        if custom_references is not None:
            references = validate_identifier_list(custom_references, api)
            source.references = list(references)
            source.custom_list_of_references = list(references)

        if not source.references:
            raise NoReferenceData(
                f"No references found for {seed} in {api.value}, try another provider.",
                identifier=seed,
            )

        first = source.first_author
        label = f"{first.last_name if first else seed} {source.year or ''}".strip()
        logger.info("Resolved source %s (%d references)", source.id, len(source.references))
        return GraphSession(source=source, api=api, label=label, title=source.title, loading=True)

    def list_session(self, identifiers: Sequence[Optional[str]], label: str) -> GraphSession:
        """
        Session for a raw identifier list: a pseudo-source without metadata whose
        references are exactly the list.
        """
        references = validate_identifier_list(identifiers, self.provider.name)
        if not any(references):
            raise NoReferenceData("The identifier list is empty.", identifier=label)
        source = Article(
            id=None,
            title=label,
            references=list(references),
            custom_list_of_references=list(references),
        )
        return GraphSession(source=source, api=self.provider.name, label=label, title=label, loading=True)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    async def build(
        self,
        session: GraphSession,
        is_current: IsCurrent = lambda session: True,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        """
        Resolve input and suggestions for `session`.

        Batch failures are recorded on `session.errors`; `session.loading` is
        cleared on every exit path.
        """
        notify = checkpoint or (lambda s, stage: None)
        session.loading = True
        try:
            if not await self._resolve_input(session, is_current):
                return
            notify(session, STAGE_INPUT)

            # Both suggestion stages rank against this snapshot.
            snapshot = session.adjacency.copy()
            input_ids = session.input_ids
            incoming_ids = select_incoming(snapshot.referenced_by, input_ids, self.suggestion_cap)
            outgoing_ids: List[str] = []
            if self.supports_citations:
                outgoing_ids = select_outgoing(snapshot.citing, input_ids, incoming_ids, self.suggestion_cap)

            await asyncio.gather(
                self._resolve_suggestions(session, incoming_ids, STAGE_INCOMING, input_ids, is_current, notify),
                self._resolve_suggestions(session, outgoing_ids, STAGE_OUTGOING, input_ids, is_current, notify),
            )
        except CitenetError as exc:
            logger.error("Building session %r failed: %s", session.label, exc)
            session.add_error(str(exc))
        finally:
            session.loading = False
            if is_current(session):
                notify(session, STAGE_DONE)

    async def _resolve_input(self, session: GraphSession, is_current: IsCurrent) -> bool:
        source = session.source
        reference_ids = _unique(source.references)

        raw = await self._fetch(reference_ids, with_citations=self.supports_citations)
        if not is_current(session):
            logger.info("Discarding input for closed session %r", session.label)
            return False

        articles = self._normalize(raw, session, source_reference_order=source.references)

        if source.custom_list_of_references is not None:
            # Align the list with the provider's id format so degrees line up.
            source.references = [a.id for a in articles]

        inputs = [a for a in articles if a.id != source.id]
        if source.id:
            inputs.append(source)

        session.input = inputs
        build_adjacency(inputs, session.input_ids, self.supports_citations, existing=session.adjacency)
        logger.info(
            "Session %r: %d of %d references resolved",
            session.label,
            len(articles),
            len(reference_ids),
        )
        return True

    async def _resolve_suggestions(
        self,
        session: GraphSession,
        ids: List[str],
        stage: str,
        input_ids: List[str],
        is_current: IsCurrent,
        notify: Checkpoint,
    ) -> None:
        if not ids:
            return
        try:
            raw = await self._fetch(ids)
            if not is_current(session):
                logger.info("Discarding %s suggestions for closed session %r", stage, session.label)
                return
            articles = self._normalize(raw, session)
        except CitenetError as exc:
            logger.error("%s suggestions for %r failed: %s", stage.capitalize(), session.label, exc)
            session.add_error(f"{stage.capitalize()} suggestions: {exc}")
            return

        excluded = set(input_ids)
        articles = [a for a in _in_order(articles, ids) if a.id not in excluded]

        if stage == STAGE_INCOMING:
            session.incoming_suggestions = articles
        else:
            session.outgoing_suggestions = articles

        if not self.supports_citations:
            backfill_citing(session.adjacency, articles, input_ids)

        notify(session, stage)
