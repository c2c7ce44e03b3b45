# citenet/providers/base.py

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence, Type

import requests

from citenet.config.settings import ProviderName, settings
from citenet.errors import (
    CitenetError,
    InvalidIdentifier,
    MalformedUpstreamRecord,
    NotFound,
    ProviderRequestFailed,
)
from citenet.models.article import Article

logger = logging.getLogger("citenet.providers")


# -------------------------------------------------------------------
# Raw responses (one tagged variant per provider)
# -------------------------------------------------------------------

@dataclass
class RawResponse:
    """
    Provider payload for one batched call.

    records:
        One entry per requested id, in request order. `None` means the provider
        returned nothing for that id.
    error:
        Set when the whole batch failed (rate limit, auth failure, rejected query).
    """

    provider: ClassVar[ProviderName]

    records: List[Optional[Dict[str, Any]]] = field(default_factory=list)
    requested_ids: List[Optional[str]] = field(default_factory=list)
    error: Optional[str] = None
    status_code: Optional[int] = None
    url: Optional[str] = None


@dataclass
class OpenAlexResponse(RawResponse):
    provider: ClassVar[ProviderName] = ProviderName.OPENALEX


@dataclass
class SemanticScholarResponse(RawResponse):
    provider: ClassVar[ProviderName] = ProviderName.SEMANTIC_SCHOLAR


@dataclass
class CrossrefResponse(RawResponse):
    provider: ClassVar[ProviderName] = ProviderName.CROSSREF


@dataclass
class OpenCitationsResponse(RawResponse):
    provider: ClassVar[ProviderName] = ProviderName.OPENCITATIONS


# -------------------------------------------------------------------
# Coercion helpers shared by the normalizers
# -------------------------------------------------------------------

def coerce_text(value: Any) -> Optional[str]:
    """
    Provider strings arrive as str, list of str, or missing.

    Lists are joined with "," and empty values become None.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        parts = [str(v) for v in value if v is not None]
        text = ",".join(parts)
    else:
        text = str(value)
    text = text.strip()
    return text or None


def upper(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text.upper() if text else None


def strip_prefix(value: Optional[str], prefix: str) -> Optional[str]:
    if value is None:
        return None
    if value.lower().startswith(prefix.lower()):
        return value[len(prefix):]
    return value


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def split_pages(pages: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    if not pages:
        return None, None
    first, _, last = str(pages).partition("-")
    return first.strip() or None, last.strip() or None


def _report(errors: Optional[List[CitenetError]], error: CitenetError) -> None:
    logger.warning("%s", error)
    if errors is not None:
        errors.append(error)


# -------------------------------------------------------------------
# Normalizer interface
# -------------------------------------------------------------------

class ArticleNormalizer(ABC):
    """
    Converts one provider's RawResponse variant into canonical Articles.

    Subclasses only implement `parse_record`; batching, error isolation,
    reference numbering and duplicate merging live here.
    """

    response_type: ClassVar[Type[RawResponse]]

    @abstractmethod
    def parse_record(self, record: Dict[str, Any]) -> Article:
        """Map one upstream record to an Article. May raise KeyError/TypeError/ValueError."""

    def normalize(
        self,
        raw: RawResponse,
        source_reference_order: Optional[Sequence[Optional[str]]] = None,
        errors: Optional[List[CitenetError]] = None,
    ) -> List[Article]:
        if not isinstance(raw, self.response_type):
            raise TypeError(
                f"{type(self).__name__} expects {self.response_type.__name__}, "
                f"got {type(raw).__name__}"
            )

        provider = self.response_type.provider.value
        if raw.error:
            raise ProviderRequestFailed(
                f"{provider} request failed: {raw.error}",
                identifier=", ".join(i for i in raw.requested_ids if i) or None,
                status_code=raw.status_code,
                url=raw.url,
            )

        order: Dict[str, int] = {}
        if source_reference_order is not None:
            for position, ref in enumerate(source_reference_order, start=1):
                key = upper(ref)
                if key and key not in order:
                    order[key] = position

        articles: List[Article] = []
        by_id: Dict[str, Article] = {}

        for position, record in enumerate(raw.records):
            requested = raw.requested_ids[position] if position < len(raw.requested_ids) else None

            if record is None:
                if requested:
                    _report(errors, NotFound(f"{provider} has no record for {requested}", identifier=requested))
                continue

            try:
                article = self.parse_record(record)
                if not article.id:
                    raise MalformedUpstreamRecord("record has no usable identifier")
            except MalformedUpstreamRecord as exc:
                _report(
                    errors,
                    MalformedUpstreamRecord(f"{provider} record for {requested or '?'}: {exc}", identifier=requested),
                )
                continue
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                _report(
                    errors,
                    MalformedUpstreamRecord(
                        f"{provider} record for {requested or '?'} is malformed: {exc!r}",
                        identifier=requested,
                    ),
                )
                continue

            if order:
                article.number_in_source_references = order.get(article.id) or (
                    order.get(article.doi) if article.doi else None
                )

            existing = by_id.get(article.id)
            if existing is None:
                by_id[article.id] = article
                articles.append(article)
            else:
                _merge_duplicate(existing, article)

        return articles


def _merge_duplicate(kept: Article, duplicate: Article) -> None:
    # Endpoints listing citations/references return one stub per calling article.
    if len(duplicate.references) == 1:
        ref = duplicate.references[0]
        if ref and ref not in kept.references:
            kept.references.append(ref)
    elif duplicate.citations is not None and len(duplicate.citations) == 1:
        if kept.citations is None:
            kept.citations = []
        if duplicate.citations[0] not in kept.citations:
            kept.citations.append(duplicate.citations[0])


# -------------------------------------------------------------------
# Connector interface
# -------------------------------------------------------------------

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class SourceConnector(ABC):
    """
    Batched HTTP client for one provider.

    `fetch_by_ids` issues one logical call per stage (internally chunked) and
    returns the provider's RawResponse variant. Batch failures are reported on
    the response's `error` field instead of being raised.
    """

    name: ClassVar[ProviderName]
    response_type: ClassVar[Type[RawResponse]]
    supports_citations: ClassVar[bool] = False
    base_url: ClassVar[str] = ""
    batch_size: ClassVar[int] = 50

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        mailto: Optional[str] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = max(1, max_retries if max_retries is not None else settings.provider_max_retries)
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.retry_backoff_seconds
        self.mailto = mailto or settings.MAILTO

    # ------------------------------------------------------------------
    # Provider-specific hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def format_id(self, identifier: str) -> str:
        """Return the provider's query form of an id, or raise InvalidIdentifier."""

    @abstractmethod
    def _fetch_chunk(self, query_ids: List[str], with_citations: bool) -> Dict[str, Dict[str, Any]]:
        """
        Fetch one chunk; return records keyed by the upper-cased query id
        (without provider prefixes) so they can be aligned with the request.
        """

    def record_keys(self, query_id: str) -> List[str]:
        """Keys under which the record for `query_id` may be found in a chunk result."""
        return [query_id.upper()]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fetch_by_ids(self, ids: Iterable[Optional[str]], with_citations: bool = False) -> RawResponse:
        requested = [str(i).strip() if i is not None and str(i).strip() else None for i in ids]

        query_ids: List[Optional[str]] = []
        for identifier in requested:
            if identifier is None:
                query_ids.append(None)
                continue
            try:
                query_ids.append(self.format_id(identifier))
            except InvalidIdentifier as exc:
                logger.warning("[%s] skipping %s", self.name.value, exc)
                query_ids.append(None)

        to_fetch: List[str] = []
        for q in query_ids:
            if q is not None and q not in to_fetch:
                to_fetch.append(q)

        found: Dict[str, Dict[str, Any]] = {}
        try:
            for start in range(0, len(to_fetch), self.batch_size):
                chunk = to_fetch[start:start + self.batch_size]
                found.update(self._fetch_chunk(chunk, with_citations))
        except ProviderRequestFailed as exc:
            logger.error("[%s] batch failed: %s", self.name.value, exc)
            return self.response_type(
                records=[],
                requested_ids=requested,
                error=str(exc),
                status_code=exc.status_code,
                url=exc.url,
            )

        records: List[Optional[Dict[str, Any]]] = []
        for q in query_ids:
            record = None
            if q is not None:
                for key in self.record_keys(q):
                    if key in found:
                        record = found[key]
                        break
            records.append(record)

        logger.info(
            "[%s] fetched %d/%d records",
            self.name.value,
            sum(1 for r in records if r is not None),
            sum(1 for q in query_ids if q is not None),
        )
        return self.response_type(records=records, requested_ids=requested)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        allow_not_found: bool = False,
    ) -> Any:
        """
        Perform a request with retries on 429/5xx and connection errors.

        Returns the decoded JSON body, or None for a 404 when `allow_not_found`.
        Raises ProviderRequestFailed once retries are exhausted or on any other
        non-success status.
        """
        last_status: Optional[int] = None
        last_message = ""

        for attempt in range(self.max_retries):
            try:
                resp = self.session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                last_status, last_message = None, f"network error: {exc}"
                logger.warning("[%s] %s (attempt %d)", self.name.value, last_message, attempt + 1)
            else:
                if resp.status_code == 404 and allow_not_found:
                    return None
                if resp.ok:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise ProviderRequestFailed(
                            f"invalid JSON from {self.name.value}: {exc}",
                            status_code=resp.status_code,
                            url=url,
                        ) from exc
                last_status = resp.status_code
                last_message = f"HTTP {resp.status_code}: {(resp.text or '')[:200]}"
                if resp.status_code not in RETRYABLE_STATUS:
                    raise ProviderRequestFailed(last_message, status_code=last_status, url=url)
                logger.warning("[%s] %s (attempt %d)", self.name.value, last_message, attempt + 1)

            if attempt + 1 < self.max_retries:
                time.sleep(self.backoff_seconds * (2 ** attempt))

        raise ProviderRequestFailed(
            f"giving up after {self.max_retries} attempts: {last_message}",
            status_code=last_status,
            url=url,
        )
