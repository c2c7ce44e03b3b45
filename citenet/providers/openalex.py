# citenet/providers/openalex.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from citenet.config.settings import ProviderName, settings
from citenet.models.article import Article, Author
from citenet.providers.base import (
    ArticleNormalizer,
    OpenAlexResponse,
    SourceConnector,
    strip_prefix,
    to_int,
    upper,
)

logger = logging.getLogger("citenet.providers.openalex")

OPENALEX_PREFIX = "https://openalex.org/"
DOI_URL_PREFIX = "https://doi.org/"
PUBMED_PREFIX = "https://pubmed.ncbi.nlm.nih.gov/"

SELECT_FIELDS = (
    "id,doi,ids,title,authorships,publication_year,primary_location,biblio,"
    "referenced_works,cited_by_count,abstract_inverted_index,is_retracted,type,publication_date"
)


def reconstruct_abstract(inverted_index: Optional[Dict[str, List[int]]]) -> Optional[str]:
    """
    Rebuild an abstract from OpenAlex's word -> positions index.
    """
    if not inverted_index:
        return None
    positions: Dict[int, str] = {}
    for word, indices in inverted_index.items():
        for i in indices:
            positions[i] = word
    text = " ".join(positions[i] for i in sorted(positions))
    return " ".join(text.split()) or None


def _openalex_id(value: Optional[str]) -> Optional[str]:
    return upper(strip_prefix(value, OPENALEX_PREFIX))


class OpenAlexNormalizer(ArticleNormalizer):
    response_type = OpenAlexResponse

    def parse_record(self, record: Dict[str, Any]) -> Article:
        source = (record.get("primary_location") or {}).get("source") or {}
        journal = source.get("display_name")
        host = source.get("host_organization_name")
        if journal and host and host not in (source.get("title") or journal):
            journal = f"{journal} ({host})"

        authors = []
        for authorship in record.get("authorships") or []:
            author = authorship.get("author") or {}
            affiliation = ", ".join(
                inst.get("display_name", "") + (f" ({inst['country_code']})" if inst.get("country_code") else "")
                for inst in authorship.get("institutions") or []
            )
            authors.append(
                Author.from_display_name(
                    author.get("display_name") or "",
                    affiliation=affiliation or None,
                    orcid=strip_prefix(author.get("orcid"), "https://orcid.org/"),
                    id=_openalex_id(author.get("id")),
                )
            )

        biblio = record.get("biblio") or {}
        referenced = record.get("referenced_works")
        citations = record.get("citations")
        if isinstance(citations, dict):
            citations = citations.get("results")

        return Article(
            id=_openalex_id(record.get("id")),
            doi=upper(strip_prefix(record.get("doi"), DOI_URL_PREFIX)),
            title=str(record.get("title") or ""),
            journal=journal or None,
            authors=authors,
            year=to_int(record.get("publication_year")),
            date=record.get("publication_date"),
            type=record.get("type"),
            volume=biblio.get("volume"),
            issue=biblio.get("issue"),
            first_page=biblio.get("first_page"),
            last_page=biblio.get("last_page"),
            references=[_openalex_id(r) for r in referenced or []],
            references_count=len(referenced) if referenced is not None else None,
            citations=(
                [_openalex_id(c["id"] if isinstance(c, dict) else c) for c in citations]
                if citations is not None
                else None
            ),
            citations_count=to_int(record.get("cited_by_count")),
            abstract=reconstruct_abstract(record.get("abstract_inverted_index")),
            is_retracted=record.get("is_retracted"),
        )


class OpenAlexConnector(SourceConnector):
    """
    Batched works lookup through the `filter` endpoint (50 OR-ed ids per call).
    """

    name = ProviderName.OPENALEX
    response_type = OpenAlexResponse
    supports_citations = True
    base_url = "https://api.openalex.org/works"
    batch_size = 50
    per_page = 200

    def __init__(self, *args: Any, max_citing_pages: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.max_citing_pages = max_citing_pages or settings.openalex_max_citing_pages

    def format_id(self, identifier: str) -> str:
        text = identifier.strip()
        lowered = text.lower()
        if lowered.startswith(OPENALEX_PREFIX):
            return "openalex:" + text[len(OPENALEX_PREFIX):].upper()
        if lowered.startswith(DOI_URL_PREFIX):
            return "doi:" + text[len(DOI_URL_PREFIX):]
        if lowered.startswith(PUBMED_PREFIX):
            return "pmid:" + text[len(PUBMED_PREFIX):].strip("/")
        for prefix in ("doi:", "pmid:", "openalex:"):
            if lowered.startswith(prefix):
                rest = text[len(prefix):]
                return prefix + (rest.upper() if prefix == "openalex:" else rest)
        if "/" in text:
            return "doi:" + text
        if text.isdigit():
            return "pmid:" + text
        return "openalex:" + text.upper()

    def _fetch_chunk(self, query_ids: List[str], with_citations: bool) -> Dict[str, Dict[str, Any]]:
        groups: Dict[str, List[str]] = {"doi": [], "pmid": [], "openalex": []}
        for q in query_ids:
            kind, _, value = q.partition(":")
            groups[kind].append(value)

        filter_keys = {"doi": "doi", "pmid": "ids.pmid", "openalex": "ids.openalex"}
        found: Dict[str, Dict[str, Any]] = {}

        for kind, values in groups.items():
            if not values:
                continue
            data = self._request(
                "GET",
                self.base_url,
                params={
                    "filter": f"{filter_keys[kind]}:" + "|".join(values),
                    "select": SELECT_FIELDS,
                    "per-page": self.per_page,
                    "mailto": self.mailto,
                },
            )
            for work in data.get("results") or []:
                for key in self._keys_for_work(work):
                    found.setdefault(key, work)

        if with_citations and found:
            self._attach_citations(found)

        return found

    @staticmethod
    def _keys_for_work(work: Dict[str, Any]) -> List[str]:
        keys = []
        work_id = _openalex_id(work.get("id"))
        if work_id:
            keys.append("OPENALEX:" + work_id)
        doi = upper(strip_prefix(work.get("doi"), DOI_URL_PREFIX))
        if doi:
            keys.append("DOI:" + doi)
        pmid = strip_prefix((work.get("ids") or {}).get("pmid"), PUBMED_PREFIX)
        if pmid:
            keys.append("PMID:" + pmid.strip("/").upper())
        return keys

    def _attach_citations(self, found: Dict[str, Dict[str, Any]]) -> None:
        """
        Collect ids of works citing the chunk with a single `cites:` filter and
        cursor paging, then attach them per cited work as `citations`.
        """
        works: Dict[str, Dict[str, Any]] = {}
        for work in found.values():
            work_id = _openalex_id(work.get("id"))
            if work_id:
                works[work_id] = work
                work.setdefault("citations", [])

        cursor: Optional[str] = "*"
        pages = 0
        while cursor and pages < self.max_citing_pages:
            data = self._request(
                "GET",
                self.base_url,
                params={
                    "filter": "cites:" + "|".join(works),
                    "select": "id,referenced_works",
                    "per-page": self.per_page,
                    "sort": "referenced_works_count:desc",
                    "cursor": cursor,
                    "mailto": self.mailto,
                },
            )
            pages += 1
            for citing in data.get("results") or []:
                citing_id = _openalex_id(citing.get("id"))
                for ref in citing.get("referenced_works") or []:
                    cited = works.get(_openalex_id(ref))
                    if cited is not None and citing_id not in cited["citations"]:
                        cited["citations"].append(citing_id)
            cursor = (data.get("meta") or {}).get("next_cursor")
            if not data.get("results"):
                break

        if cursor:
            logger.info("[openalex] citing works truncated after %d pages", pages)
