# citenet/providers/crossref.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from citenet.config.settings import ProviderName
from citenet.errors import MalformedUpstreamRecord
from citenet.ingest.identifiers import extract_doi
from citenet.models.article import Article, Author
from citenet.providers.base import (
    ArticleNormalizer,
    CrossrefResponse,
    SourceConnector,
    coerce_text,
    split_pages,
    to_int,
    upper,
)

logger = logging.getLogger("citenet.providers.crossref")

SELECT_FIELDS = (
    "DOI,title,author,issued,container-title,reference,is-referenced-by-count,"
    "references-count,abstract,type,volume,issue,page"
)


def _issued(record: Dict[str, Any]) -> tuple[Optional[int], Optional[str]]:
    parts = ((record.get("issued") or {}).get("date-parts") or [[None]])[0] or [None]
    year = to_int(parts[0])
    if year is None:
        return None, None
    month = to_int(parts[1]) if len(parts) > 1 else None
    day = to_int(parts[2]) if len(parts) > 2 else None
    date = f"{year:04d}-{month or 1:02d}-{day or 1:02d}"
    return year, date


def _affiliation(value: Any) -> Optional[str]:
    if isinstance(value, list):
        return ", ".join(a.get("name", "") for a in value if a) or None
    if isinstance(value, str):
        return value or None
    return None


class CrossrefNormalizer(ArticleNormalizer):
    response_type = CrossrefResponse

    def parse_record(self, record: Dict[str, Any]) -> Article:
        doi = upper(record.get("DOI"))
        if not doi:
            raise MalformedUpstreamRecord("Crossref record without DOI")

        authors = [
            Author(
                last_name=a.get("family") or a.get("name") or "",
                first_name=a.get("given"),
                affiliation=_affiliation(a.get("affiliation")),
                orcid=a.get("ORCID"),
            )
            for a in record.get("author") or []
        ]

        year, date = _issued(record)
        first_page, last_page = split_pages(record.get("page"))
        reference = record.get("reference")

        return Article(
            id=doi,
            doi=doi,
            title=coerce_text(record.get("title")) or "",
            journal=coerce_text(record.get("container-title")),
            authors=authors,
            year=year,
            date=date,
            type=record.get("type"),
            volume=record.get("volume"),
            issue=record.get("issue"),
            first_page=first_page,
            last_page=last_page,
            # Entries without a DOI stay as holes so the bibliography numbering survives.
            references=[upper(r.get("DOI")) for r in reference or []],
            references_count=to_int(record.get("references-count")) or (len(reference) if reference else None),
            citations_count=to_int(record.get("is-referenced-by-count")),
            abstract=record.get("abstract"),
        )


class CrossrefConnector(SourceConnector):
    """
    DOI-only works lookup, OR-ing `doi:` filters.
    """

    name = ProviderName.CROSSREF
    response_type = CrossrefResponse
    supports_citations = False
    base_url = "https://api.crossref.org/works"
    batch_size = 20

    def format_id(self, identifier: str) -> str:
        return extract_doi(identifier)

    def _fetch_chunk(self, query_ids: List[str], with_citations: bool) -> Dict[str, Dict[str, Any]]:
        data = self._request(
            "GET",
            self.base_url,
            params={
                "filter": ",".join(f"doi:{doi}" for doi in query_ids),
                "select": SELECT_FIELDS,
                "rows": len(query_ids),
                "mailto": self.mailto,
            },
        )
        items = ((data or {}).get("message") or {}).get("items") or []
        return {item["DOI"].upper(): item for item in items if item.get("DOI")}
