# citenet/web/app.py

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from citenet.api.models import (
    ArticleSummary,
    AuthorNetwork,
    CitationNetwork,
    CompletenessReport,
    SessionDetail,
    SessionSummary,
)
from citenet.config.settings import ProviderName, settings
from citenet.errors import (
    CitenetError,
    InvalidIdentifier,
    NoReferenceData,
    NotFound,
    ProviderRequestFailed,
    SessionError,
)
from citenet.export.formats import safe_name, select_articles, to_csv, to_ris
from citenet.graph.completeness import estimate_completeness
from citenet.graph.render import build_author_network, build_citation_network
from citenet.graph.storage import load_latest_sessions, save_sessions
from citenet.ingest.pipeline import ResolutionPipeline
from citenet.models.article import Article, author_string
from citenet.models.session import GraphSession
from citenet.providers.registry import get_provider
from citenet.session.manager import SessionManager, sort_incoming, sort_input, sort_outgoing
from citenet.web.security import api_key_auth, rate_limiter

logger = logging.getLogger("citenet.web")


# -------------------------------------------------------------------
# Lifespan: restore the latest saved sessions once at startup
# -------------------------------------------------------------------

def _new_manager() -> SessionManager:
    return SessionManager(ResolutionPipeline(get_provider()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup handler: build the session manager and restore the latest
    snapshot (if any) into it.
    """
    manager = _new_manager()
    try:
        saved = load_latest_sessions(settings.sessions_dir)
    except (OSError, ValueError, KeyError):
        logger.exception("Failed to load saved sessions; starting empty")
        saved = None

    if saved:
        manager.restore(saved)
        logger.info("Restored %d session(s)", len(manager.sessions))

    app.state.manager = manager

    yield


app = FastAPI(
    title="Local Citation Network API",
    description="Build and inspect citation networks around seed publications.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------------
# Middleware
# -------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log method, path, and response status.
    """
    logger.info(f"Incoming request: {request.method} {request.url.path}")
    start = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start) * 1000
    logger.info(
        f"Completed {request.method} {request.url.path} "
        f"with status {response.status_code} in {duration_ms:.2f}ms"
    )

    return response


# -------------------------------------------------------------------
# Models
# -------------------------------------------------------------------


class SeedRequest(BaseModel):
    seed: str = Field(..., description="DOI, PMID or provider id of the seed article.")
    provider: Optional[ProviderName] = None
    custom_references: Optional[List[Optional[str]]] = Field(
        None,
        description="Use these identifiers as the seed's reference list.",
    )


class ListRequest(BaseModel):
    identifiers: List[Optional[str]]
    label: str
    provider: Optional[ProviderName] = None


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------


def _get_manager(app_obj: FastAPI) -> SessionManager:
    """
    Fetch the session manager from app.state, initializing if needed.
    """
    manager = getattr(app_obj.state, "manager", None)
    if manager is None:
        manager = _new_manager()
        app_obj.state.manager = manager
    return manager


def _http_error(exc: CitenetError) -> HTTPException:
    if isinstance(exc, InvalidIdentifier):
        status_code = 400
    elif isinstance(exc, (NotFound, SessionError)):
        status_code = 404
    elif isinstance(exc, NoReferenceData):
        status_code = 422
    elif isinstance(exc, ProviderRequestFailed):
        status_code = 502
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=str(exc))


def _get_session(manager: SessionManager, index: int) -> GraphSession:
    try:
        return manager.get(index)
    except SessionError as exc:
        raise _http_error(exc)


def _pipeline_for(provider: Optional[ProviderName]) -> Optional[ResolutionPipeline]:
    if provider is None:
        return None
    return ResolutionPipeline(get_provider(provider))


def _article_summary(session: GraphSession, article: Article) -> ArticleSummary:
    return ArticleSummary(
        id=article.id or "",
        title=article.title,
        authors=author_string(article.authors),
        year=article.year,
        journal=article.journal,
        doi=article.doi,
        in_degree=session.in_degree(article.id),
        out_degree=session.out_degree(article.id),
    )


def _summary(manager: SessionManager, index: int, session: GraphSession) -> SessionSummary:
    return SessionSummary(
        index=index,
        label=session.label,
        title=session.title,
        api=session.api.value,
        created_at=session.created_at,
        loading=session.loading,
        active=manager.active_index == index,
        input_count=len(session.input),
        incoming_count=len(session.incoming_suggestions),
        outgoing_count=len(session.outgoing_suggestions),
        errors=list(session.errors),
    )


def _detail(manager: SessionManager, index: int, session: GraphSession) -> SessionDetail:
    return SessionDetail(
        summary=_summary(manager, index, session),
        source_id=session.source.id,
        input=[_article_summary(session, a) for a in sort_input(session)],
        incoming_suggestions=[_article_summary(session, a) for a in sort_incoming(session)],
        outgoing_suggestions=[_article_summary(session, a) for a in sort_outgoing(session)],
        visible_incoming=session.visible_incoming_count,
        visible_outgoing=session.visible_outgoing_count,
    )


def _index_of(manager: SessionManager, session: GraphSession) -> int:
    for i, s in enumerate(manager.sessions):
        if s is session:
            return i
    raise HTTPException(status_code=409, detail=f"Session {session.label!r} was closed while building.")


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------


@app.get("/health", summary="Health check")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/sessions", response_model=List[SessionSummary], summary="List open sessions")
async def list_sessions(request: Request) -> List[SessionSummary]:
    manager = _get_manager(request.app)
    return [_summary(manager, i, s) for i, s in enumerate(manager.sessions)]


@app.post(
    "/sessions",
    response_model=SessionDetail,
    summary="Build a session around a seed article",
    dependencies=[Depends(api_key_auth), Depends(rate_limiter)],
)
async def create_session(payload: SeedRequest, request: Request) -> SessionDetail:
    """
    Resolve the seed, its references and the suggestion candidates.

    Stage failures after the seed are reported in `summary.errors`; a seed
    that cannot be resolved produces no session.
    """
    manager = _get_manager(request.app)
    try:
        session = await manager.create_from_seed(
            payload.seed,
            payload.custom_references,
            pipeline=_pipeline_for(payload.provider),
        )
    except CitenetError as exc:
        raise _http_error(exc)

    return _detail(manager, _index_of(manager, session), session)


@app.post(
    "/sessions/list",
    response_model=SessionDetail,
    summary="Build a session from an identifier list",
    dependencies=[Depends(api_key_auth), Depends(rate_limiter)],
)
async def create_list_session(payload: ListRequest, request: Request) -> SessionDetail:
    manager = _get_manager(request.app)
    try:
        session = await manager.create_from_identifier_list(
            payload.identifiers,
            payload.label,
            pipeline=_pipeline_for(payload.provider),
        )
    except CitenetError as exc:
        raise _http_error(exc)

    return _detail(manager, _index_of(manager, session), session)


@app.delete(
    "/sessions",
    summary="Close every session",
    dependencies=[Depends(api_key_auth)],
)
async def close_all_sessions(request: Request) -> dict:
    manager = _get_manager(request.app)
    manager.close_all()
    return {"active_index": None, "count": 0}


@app.post(
    "/sessions/save",
    summary="Write a snapshot of all open sessions",
    dependencies=[Depends(api_key_auth)],
)
async def save_all_sessions(request: Request) -> dict:
    manager = _get_manager(request.app)
    path = save_sessions(manager.sessions)
    return {"path": str(path), "count": len(manager.sessions)}


@app.get("/sessions/{index}", response_model=SessionDetail, summary="Get one session")
async def get_session(index: int, request: Request) -> SessionDetail:
    manager = _get_manager(request.app)
    session = _get_session(manager, index)
    return _detail(manager, index, session)


@app.post("/sessions/{index}/activate", summary="Make a session the active one")
async def activate_session(index: int, request: Request) -> dict:
    manager = _get_manager(request.app)
    try:
        view = manager.switch_to(index)
    except SessionError as exc:
        raise _http_error(exc)
    return {
        "active_index": view.session_index,
        "selected_id": view.selected_id,
        "visible_incoming": view.visible_incoming,
        "visible_outgoing": view.visible_outgoing,
    }


@app.delete(
    "/sessions/{index}",
    summary="Close one session",
    dependencies=[Depends(api_key_auth)],
)
async def close_session(index: int, request: Request) -> dict:
    manager = _get_manager(request.app)
    try:
        active = manager.close(index)
    except SessionError as exc:
        raise _http_error(exc)
    return {"active_index": active, "count": len(manager.sessions)}


@app.get(
    "/sessions/{index}/network",
    response_model=CitationNetwork,
    response_model_by_alias=True,
    summary="Citation network render model",
)
async def get_network(
    index: int,
    request: Request,
    show_source: bool = True,
    node_color: str = Query("year", pattern="^(year|journal)$"),
    incoming: Optional[int] = Query(None, ge=0),
    outgoing: Optional[int] = Query(None, ge=0),
    min_degree_incoming: int = Query(1, ge=1),
    min_degree_outgoing: int = Query(1, ge=1),
) -> CitationNetwork:
    session = _get_session(_get_manager(request.app), index)
    session.set_visible_suggestions(incoming=incoming, outgoing=outgoing)
    return build_citation_network(
        session,
        show_source=show_source,
        node_color=node_color,
        min_degree_incoming=min_degree_incoming,
        min_degree_outgoing=min_degree_outgoing,
    )


@app.get(
    "/sessions/{index}/authors",
    response_model=AuthorNetwork,
    response_model_by_alias=True,
    summary="Co-authorship network render model",
)
async def get_authors(
    index: int,
    request: Request,
    min_publications: Optional[int] = Query(None, ge=1),
    include_suggestions: bool = True,
) -> AuthorNetwork:
    session = _get_session(_get_manager(request.app), index)
    return build_author_network(
        session,
        min_publications=min_publications,
        include_suggestions=include_suggestions,
    )


@app.get(
    "/sessions/{index}/completeness",
    response_model=CompletenessReport,
    summary="Data-completeness statistics",
)
async def get_completeness(index: int, request: Request) -> CompletenessReport:
    session = _get_session(_get_manager(request.app), index)
    return estimate_completeness(session)


@app.get("/sessions/{index}/export", summary="Export a session as CSV or RIS")
async def export_session_file(
    index: int,
    request: Request,
    fmt: str = Query("csv", pattern="^(csv|ris)$"),
    group: str = Query("all", pattern="^(input|incoming|outgoing|all)$"),
) -> PlainTextResponse:
    session = _get_session(_get_manager(request.app), index)
    articles = select_articles(session, group)
    if fmt == "csv":
        content, media_type = to_csv(session, articles), "text/csv"
    else:
        content, media_type = to_ris(session, articles), "application/x-research-info-systems"

    filename = f"{safe_name(session.label)}.{fmt}"
    return PlainTextResponse(
        content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
