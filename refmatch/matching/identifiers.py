from __future__ import annotations

import enum
import re
from typing import Optional, Protocol

from ..logging_setup import get_logger, with_extras
from ..models import IdentifierSet, RecordHandle

logger = get_logger(__name__)


class IdentifierKind(str, enum.Enum):
    DOI = "DOI"
    ISBN = "ISBN"
    PMID = "PMID"
    PMCID = "PMCID"
    ARXIV = "ARXIV"


class UrlNormalizerLike(Protocol):
    def normalize(self, url: str) -> str: ...

    def domain(self, url: str) -> str: ...


class IsbnCleanerLike(Protocol):
    def clean(self, candidate: str) -> Optional[str]: ...


_DOI_PREFIX = re.compile(r"^https?://(dx\.)?doi\.org/", re.IGNORECASE)
_DOI_LABEL = re.compile(r"^doi:\s*", re.IGNORECASE)
_DOI_SHAPE = re.compile(r"^10\.\d+/.+")

# patterns that pull identifiers out of a record's free-form auxiliary text
AUXILIARY_PATTERNS = {
    IdentifierKind.PMID: re.compile(r"PMID:\s*(\d{7,8})\b", re.IGNORECASE),
    IdentifierKind.PMCID: re.compile(r"PMC(\d+)", re.IGNORECASE),
    IdentifierKind.ARXIV: re.compile(r"arXiv:\s*(\d{4}\.\d{4,5}(?:v\d+)?)", re.IGNORECASE),
}

_ISBN_SHAPE = re.compile(r"^(?:isbn(?:-1[03])?:?\s*)?([0-9Xx][0-9Xx\s\-]{8,15}[0-9Xx])$", re.IGNORECASE)
_ISSN_SHAPE = re.compile(r"^(\d{4})-?(\d{3}[\dXx])$")


def clean_doi(raw: Optional[str]) -> Optional[str]:
    """
    Strip resolver/label prefixes and require the `10.<registrant>/<suffix>`
    shape. Case is preserved; CrossRef treats DOIs case-insensitively.
    """
    if not raw or not isinstance(raw, str):
        return None
    cleaned = _DOI_PREFIX.sub("", raw.strip())
    cleaned = _DOI_LABEL.sub("", cleaned).strip()
    if not _DOI_SHAPE.match(cleaned):
        return None
    return cleaned


def _extract(kind: IdentifierKind, text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    m = AUXILIARY_PATTERNS[kind].search(text)
    return m.group(1) if m else None


def extract_pmid(text: Optional[str]) -> Optional[str]:
    return _extract(IdentifierKind.PMID, text)


def extract_pmcid(text: Optional[str]) -> Optional[str]:
    return _extract(IdentifierKind.PMCID, text)


def extract_arxiv_id(text: Optional[str]) -> Optional[str]:
    return _extract(IdentifierKind.ARXIV, text)


def extract_auxiliary_id(kind: IdentifierKind, text: Optional[str]) -> Optional[str]:
    if kind not in AUXILIARY_PATTERNS:
        raise ValueError(f"{kind.value} is not carried in auxiliary text")
    return _extract(kind, text)


def looks_like_isbn(raw: Optional[str]) -> bool:
    if not raw:
        return False
    m = _ISBN_SHAPE.match(raw.strip())
    if not m:
        return False
    significant = re.sub(r"[\s\-]", "", m.group(1))
    return len(significant) in (10, 13)


def clean_isbn(raw: Optional[str], cleaner: IsbnCleanerLike) -> Optional[str]:
    if not looks_like_isbn(raw):
        return None
    try:
        return cleaner.clean(raw.strip()) or None
    except Exception:
        with_extras(logger, isbn=raw).warning("ISBN cleaner failed")
        return None


def clean_issn(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    m = _ISSN_SHAPE.match(raw.strip())
    if not m:
        return None
    return f"{m.group(1)}-{m.group(2).upper()}"


def build_identifier_set(
    record: RecordHandle,
    url_normalizer: UrlNormalizerLike,
    isbn_cleaner: IsbnCleanerLike,
) -> IdentifierSet:
    title = (record.title or "").strip() or None
    url = None
    if record.url and record.url.strip():
        url = url_normalizer.normalize(record.url.strip()) or None
    aux = record.auxiliary_text or ""
    return IdentifierSet(
        title=title,
        first_author=record.first_author,
        year=record.year,
        doi=clean_doi(record.doi),
        isbn=clean_isbn(record.isbn, isbn_cleaner),
        issn=clean_issn(record.issn),
        url=url,
        pmid=extract_pmid(aux),
        pmcid=extract_pmcid(aux),
        arxiv_id=extract_arxiv_id(aux),
    )
