# citenet/providers/semantic_scholar.py

from __future__ import annotations

import logging
from typing import Any, Dict, List

from citenet.config.settings import ProviderName, settings
from citenet.ingest.identifiers import is_doi, is_pmid, is_semantic_scholar_id
from citenet.models.article import Article, Author
from citenet.providers.base import (
    ArticleNormalizer,
    SemanticScholarResponse,
    SourceConnector,
    split_pages,
    to_int,
    upper,
)

logger = logging.getLogger("citenet.providers.semantic_scholar")

BASE_FIELDS = (
    "title,venue,year,externalIds,abstract,referenceCount,citationCount,publicationTypes,"
    "publicationDate,journal,authors.externalIds,authors.name,authors.affiliations,"
    "references.paperId,tldr"
)


class SemanticScholarNormalizer(ArticleNormalizer):
    response_type = SemanticScholarResponse

    def parse_record(self, record: Dict[str, Any]) -> Article:
        journal_info = record.get("journal") or {}
        first_page, last_page = split_pages(journal_info.get("pages"))

        authors = []
        for author in record.get("authors") or []:
            authors.append(
                Author.from_display_name(
                    author["name"] or "",
                    affiliation=", ".join(author.get("affiliations") or []) or None,
                    orcid=(author.get("externalIds") or {}).get("ORCID"),
                    id=author.get("authorId"),
                )
            )

        references = record.get("references")
        citations = record.get("citations")
        types = record.get("publicationTypes")

        return Article(
            id=upper(record.get("paperId")),
            doi=upper((record.get("externalIds") or {}).get("DOI")),
            title=str(record.get("title") or ""),
            journal=journal_info.get("name") or record.get("venue") or None,
            authors=authors,
            year=to_int(record.get("year")),
            date=record.get("publicationDate"),
            type=", ".join(types) if isinstance(types, list) else types,
            volume=(journal_info.get("volume") or "").strip() or None,
            first_page=first_page,
            last_page=last_page,
            # Unresolvable references come back with paperId null; keep the holes.
            references=[upper(r.get("paperId")) if r else None for r in references or []],
            references_count=to_int(record.get("referenceCount")),
            citations=(
                [upper(c["paperId"]) for c in citations if c and c.get("paperId")]
                if citations is not None
                else None
            ),
            citations_count=to_int(record.get("citationCount")),
            abstract=record.get("abstract"),
            tldr=(record.get("tldr") or {}).get("text"),
        )


class SemanticScholarConnector(SourceConnector):
    """
    Uses the graph API batch endpoint (up to 500 ids per POST).
    """

    name = ProviderName.SEMANTIC_SCHOLAR
    response_type = SemanticScholarResponse
    supports_citations = True
    base_url = "https://api.semanticscholar.org/graph/v1/paper/batch"
    batch_size = 500

    def format_id(self, identifier: str) -> str:
        text = identifier.strip()
        lowered = text.lower()
        for prefix in ("doi:", "pmid:", "corpusid:", "arxiv:", "pmcid:"):
            if lowered.startswith(prefix):
                return prefix.upper() + text[len(prefix):]
        if is_semantic_scholar_id(text):
            # Paper ids are stored upper-cased but the API expects lower case.
            return text.lower()
        if is_doi(text):
            return "DOI:" + text
        if is_pmid(text):
            return "PMID:" + text
        return text

    def _fetch_chunk(self, query_ids: List[str], with_citations: bool) -> Dict[str, Dict[str, Any]]:
        fields = BASE_FIELDS + (",citations.paperId" if with_citations else "")
        headers = {}
        if settings.SEMANTIC_SCHOLAR_API_KEY is not None:
            headers["x-api-key"] = settings.SEMANTIC_SCHOLAR_API_KEY.get_secret_value()

        data = self._request(
            "POST",
            self.base_url,
            params={"fields": fields},
            json={"ids": query_ids},
            headers=headers or None,
        )

        found: Dict[str, Dict[str, Any]] = {}
        # The batch endpoint answers positionally, with null for unknown ids.
        for query_id, record in zip(query_ids, data or []):
            if record is not None and record.get("paperId"):
                found[query_id.upper()] = record
        return found
