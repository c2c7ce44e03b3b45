# citenet/providers/opencitations.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from citenet.config.settings import ProviderName
from citenet.errors import MalformedUpstreamRecord
from citenet.ingest.identifiers import extract_doi
from citenet.models.article import Article, Author
from citenet.providers.base import (
    ArticleNormalizer,
    OpenCitationsResponse,
    SourceConnector,
    split_pages,
    to_int,
    upper,
)

logger = logging.getLogger("citenet.providers.opencitations")


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [upper(part) for part in value.split("; ") if part.strip()]


class OpenCitationsNormalizer(ArticleNormalizer):
    response_type = OpenCitationsResponse

    def parse_record(self, record: Dict[str, Any]) -> Article:
        doi = upper(record.get("doi"))
        if not doi:
            raise MalformedUpstreamRecord("OpenCitations record without DOI")

        authors = []
        for entry in (record.get("author") or "").split("; "):
            if not entry.strip():
                continue
            last, _, first = entry.partition(", ")
            authors.append(Author(last_name=last.strip(), first_name=first.strip() or None))

        raw_year = record.get("year") or ""
        first_page, last_page = split_pages(record.get("page"))
        references = _split_list(record.get("reference"))

        return Article(
            id=doi,
            doi=doi,
            title=str(record.get("title") or ""),
            journal=record.get("source_title") or None,
            authors=authors,
            year=to_int(raw_year[:4]),
            date=raw_year or None,
            volume=record.get("volume") or None,
            issue=record.get("issue") or None,
            first_page=first_page,
            last_page=last_page,
            references=references or [],
            references_count=len(references) if references is not None else None,
            citations=_split_list(record.get("citation")),
            citations_count=to_int(record.get("citation_count")),
        )


class OpenCitationsConnector(SourceConnector):
    """
    Index v1 metadata endpoint; several DOIs are joined with "__" in one path.
    Citations are always part of the metadata record.
    """

    name = ProviderName.OPENCITATIONS
    response_type = OpenCitationsResponse
    supports_citations = True
    base_url = "https://opencitations.net/index/api/v1/metadata/"
    batch_size = 20

    def format_id(self, identifier: str) -> str:
        return extract_doi(identifier)

    def _fetch_chunk(self, query_ids: List[str], with_citations: bool) -> Dict[str, Dict[str, Any]]:
        data = self._request(
            "GET",
            self.base_url + "__".join(query_ids),
            params={"mailto": self.mailto},
            allow_not_found=True,
        )
        return {item["doi"].upper(): item for item in data or [] if item.get("doi")}
