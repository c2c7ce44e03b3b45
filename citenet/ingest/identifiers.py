# citenet/ingest/identifiers.py

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence, Union

from citenet.config.settings import ProviderName
from citenet.errors import InvalidIdentifier

# Trailing "." and ";" are excluded so DOIs at the end of a sentence stay clean.
DOI_IN_TEXT = re.compile(r"10\.\d{4,9}/[-._;()/:A-Z0-9]+[-_()/:A-Z0-9]+", re.IGNORECASE)
DOI_ANYWHERE = re.compile(r"10\.\d{4,9}/\S+", re.IGNORECASE)

_DOI_PREFIX = re.compile(r"^(?:DOI:|https?://(?:dx\.)?doi\.org/)", re.IGNORECASE)
_PMID = re.compile(r"^\d+$")
_S2_PAPER_ID = re.compile(r"^[0-9a-f]{40}$", re.IGNORECASE)
_OPENALEX_WORK = re.compile(r"^(?:https://openalex\.org/)?W\d+$", re.IGNORECASE)

DOI_ONLY_PROVIDERS = (ProviderName.CROSSREF, ProviderName.OPENCITATIONS)


def clean_identifier(raw: Optional[str]) -> Optional[str]:
    """
    Strip whitespace and a leading "DOI:" or doi.org URL.

    Returns None for empty input.
    """
    if raw is None:
        return None
    text = re.sub(r"\s", "", str(raw))
    text = _DOI_PREFIX.sub("", text)
    return text or None


def is_doi(identifier: Optional[str]) -> bool:
    return bool(identifier) and DOI_ANYWHERE.match(identifier) is not None


def is_pmid(identifier: Optional[str]) -> bool:
    return bool(identifier) and _PMID.match(identifier) is not None


def is_semantic_scholar_id(identifier: Optional[str]) -> bool:
    return bool(identifier) and _S2_PAPER_ID.match(identifier) is not None


def is_openalex_id(identifier: Optional[str]) -> bool:
    return bool(identifier) and _OPENALEX_WORK.match(identifier) is not None


def extract_doi(identifier: str) -> str:
    """Return the DOI contained in `identifier` or raise InvalidIdentifier."""
    match = DOI_ANYWHERE.search(identifier or "")
    if match is None:
        raise InvalidIdentifier(
            f"{identifier} is not a valid DOI, which must be in the form 10.prefix/suffix "
            "where prefix is 4 or more digits and suffix is a string.",
            identifier=identifier,
        )
    return match.group(0)


def validate_seed(identifier: str, provider: ProviderName) -> str:
    """
    Clean a user-supplied seed id for `provider`.

    Crossref and OpenCitations only accept DOIs.
    """
    cleaned = clean_identifier(identifier)
    if not cleaned:
        raise InvalidIdentifier("Empty identifier.", identifier=identifier)
    if provider in DOI_ONLY_PROVIDERS:
        return extract_doi(cleaned)
    return cleaned


def validate_identifier_list(
    identifiers: Sequence[Optional[str]],
    provider: ProviderName,
) -> List[Optional[str]]:
    """
    Clean an identifier list, keeping empty positions as None.

    For DOI-only providers every non-empty entry must contain a DOI.
    """
    cleaned = [clean_identifier(i) for i in identifiers]
    if provider in DOI_ONLY_PROVIDERS:
        bad = [i for i in cleaned if i and not is_doi(i)]
        if bad:
            raise InvalidIdentifier(
                f"For {provider.value}, all IDs must be valid DOIs (first invalid: {bad[0]}).",
                identifier=bad[0],
            )
        return [extract_doi(i) if i else None for i in cleaned]
    return cleaned


def extract_dois(text: str) -> List[str]:
    """All distinct DOIs in `text`, upper-cased, in order of first appearance."""
    seen: List[str] = []
    for match in DOI_IN_TEXT.findall(text or ""):
        doi = match.upper()
        if doi not in seen:
            seen.append(doi)
    return seen


def read_identifier_file(path: Union[str, Path]) -> List[str]:
    """
    Read identifiers from a plain text file (bibliography, RIS, BibTeX, notes...).

    DOIs are scanned from the whole text. If none are found, the file is read as
    one identifier per line.
    """
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    dois = extract_dois(text)
    if dois:
        return dois

    lines = [clean_identifier(line) for line in text.splitlines()]
    ids = [line for line in lines if line]
    if not ids:
        raise InvalidIdentifier(f"No identifiers found in {path}.", identifier=str(path))
    return ids
