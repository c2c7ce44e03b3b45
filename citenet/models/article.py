# citenet/models/article.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class Author:
    """
    One entry of an article's author list. Order in the list is significant:
    labels are built from the first author.
    """

    last_name: str
    first_name: Optional[str] = None
    affiliation: Optional[str] = None
    orcid: Optional[str] = None
    id: Optional[str] = None

    @property
    def key(self) -> str:
        """Name key used to identify an author across articles."""
        if self.first_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.last_name.strip()

    @classmethod
    def from_display_name(cls, display_name: str, **kwargs: Any) -> "Author":
        """
        Split "Last, First" at the last comma or "First Middle Last" at the last space.
        """
        name = (display_name or "").strip()
        if "," in name:
            last, _, first = name.rpartition(",")
            return cls(last_name=last.strip(), first_name=first.strip() or None, **kwargs)
        first, _, last = name.rpartition(" ")
        return cls(last_name=last, first_name=first.strip() or None, **kwargs)


@dataclass
class Article:
    """
    Canonical record for one publication, independent of the provider it came from.

    `id` and `doi` are upper case from ingestion onward. `references` keeps the
    provider's order; positions that could not be resolved are `None` so the
    original bibliography numbering survives.
    """

    id: Optional[str]
    title: str = ""
    doi: Optional[str] = None
    journal: Optional[str] = None
    authors: List[Author] = field(default_factory=list)
    year: Optional[int] = None

    references: List[Optional[str]] = field(default_factory=list)
    citations: Optional[List[str]] = None
    references_count: Optional[int] = None
    citations_count: Optional[int] = None
    number_in_source_references: Optional[int] = None

    abstract: Optional[str] = None
    tldr: Optional[str] = None
    type: Optional[str] = None
    date: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    first_page: Optional[str] = None
    last_page: Optional[str] = None
    is_retracted: Optional[bool] = None

    is_source: bool = False
    # Literal identifier list for list-based sessions; completeness counts against it.
    custom_list_of_references: Optional[List[Optional[str]]] = None

    @property
    def resolved_references(self) -> List[str]:
        """References without holes."""
        return [r for r in self.references if r]

    @property
    def first_author(self) -> Optional[Author]:
        return self.authors[0] if self.authors else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        """
        Rebuild an Article from `to_dict` output. Unknown keys are ignored so
        snapshots written by newer versions still load.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["authors"] = [
            a if isinstance(a, Author) else Author(**{k: v for k, v in a.items() if k in _AUTHOR_FIELDS})
            for a in data.get("authors") or []
        ]
        kwargs["references"] = list(data.get("references") or [])
        return cls(**kwargs)


_AUTHOR_FIELDS = {f.name for f in fields(Author)}


def author_string(authors: List[Author], limit: Optional[int] = None) -> str:
    """
    "First Last, First Last, ..." with an optional "(n more)" tail.
    """
    if not authors:
        return ""
    shown = authors if limit is None else authors[:limit]
    text = ", ".join(a.key for a in shown)
    if limit is not None and len(authors) > limit:
        text += f", ({len(authors) - limit} more)"
    return text
