from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

_YEAR_RE = re.compile(r"\b(1[5-9]\d{2}|20\d{2}|21\d{2})\b")


class Confidence(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Creator:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None

    def display_name(self) -> str:
        """Surname-first label used in candidate listings and author matching."""
        return (self.last_name or self.name or "").strip()


@dataclass(frozen=True)
class RecordHandle:
    """
    One library record as exposed by the item repository.

    `date` is the raw date string; use `year` for comparisons.
    """
    key: str
    item_type: str
    title: Optional[str] = None
    date: Optional[str] = None
    creators: Tuple[Creator, ...] = ()
    auxiliary_text: Optional[str] = None
    url: Optional[str] = None
    doi: Optional[str] = None
    isbn: Optional[str] = None
    issn: Optional[str] = None

    @property
    def year(self) -> Optional[int]:
        if not self.date:
            return None
        m = _YEAR_RE.search(str(self.date))
        return int(m.group(1)) if m else None

    @property
    def first_author(self) -> Optional[str]:
        if not self.creators:
            return None
        return self.creators[0].display_name() or None

    def creators_display(self) -> str:
        return ", ".join(n for n in (c.display_name() for c in self.creators) if n)


@dataclass(frozen=True)
class IdentifierSet:
    title: Optional[str] = None
    first_author: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    isbn: Optional[str] = None
    issn: Optional[str] = None
    url: Optional[str] = None
    pmid: Optional[str] = None
    pmcid: Optional[str] = None
    arxiv_id: Optional[str] = None


@dataclass(frozen=True)
class DuplicateCandidate:
    key: str
    title: str
    creators: str
    year: Optional[int]
    item_type: str
    similarity: int
    match_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "creators": self.creators,
            "year": self.year,
            "itemType": self.item_type,
            "similarity": self.similarity,
            "matchType": self.match_type,
        }


@dataclass(frozen=True)
class DuplicateProcessingResult:
    has_duplicates: bool
    duplicate_count: int
    candidates: Tuple[DuplicateCandidate, ...] = ()
    flagged_items: frozenset = field(default_factory=frozenset)

    @classmethod
    def empty(cls) -> "DuplicateProcessingResult":
        return cls(has_duplicates=False, duplicate_count=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasDuplicates": self.has_duplicates,
            "duplicateCount": self.duplicate_count,
            "candidates": [c.to_dict() for c in self.candidates],
            "flaggedItems": [c.key for c in self.candidates],
        }


@dataclass(frozen=True)
class WorkRecord:
    """Subset of a CrossRef work; `raw` keeps the full message payload."""
    doi: str
    title: Tuple[str, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_crossref(cls, message: Dict[str, Any]) -> "WorkRecord":
        titles = message.get("title") or []
        if isinstance(titles, str):
            titles = [titles]
        return cls(
            doi=str(message.get("DOI") or ""),
            title=tuple(str(t) for t in titles if t),
            raw=message,
        )


# fetch outcomes: a 404 is a valid negative answer, not a failure
@dataclass(frozen=True)
class Found:
    work: WorkRecord


@dataclass(frozen=True)
class NotFound:
    doi: str


@dataclass(frozen=True)
class TransportError:
    doi: str
    message: str


FetchResult = Union[Found, NotFound, TransportError]


@dataclass(frozen=True)
class DisambiguationResult:
    doi: str
    final_score: int
    title_similarity: int
    url_priority: int
    content_position: int
    metadata: Optional[WorkRecord]
    is_valid: bool
    confidence: Confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doi": self.doi,
            "finalScore": self.final_score,
            "titleSimilarity": self.title_similarity,
            "urlPriority": self.url_priority,
            "contentPosition": self.content_position,
            "title": list(self.metadata.title) if self.metadata else [],
            "isValid": self.is_valid,
            "confidence": self.confidence.value,
        }


def record_from_dict(data: Dict[str, Any]) -> RecordHandle:
    """Build a RecordHandle from a plain mapping (CLI input, Dynamo items)."""
    creators: List[Creator] = []
    for raw in data.get("creators") or []:
        if isinstance(raw, str):
            creators.append(Creator(name=raw))
        elif isinstance(raw, dict):
            creators.append(
                Creator(
                    first_name=raw.get("first_name") or raw.get("firstName"),
                    last_name=raw.get("last_name") or raw.get("lastName"),
                    name=raw.get("name"),
                )
            )

    def _opt(*keys: str) -> Optional[str]:
        for k in keys:
            v = data.get(k)
            if v is not None and str(v).strip():
                return str(v)
        return None

    return RecordHandle(
        key=str(data.get("key") or ""),
        item_type=str(data.get("item_type") or data.get("itemType") or "journalArticle"),
        title=_opt("title"),
        date=_opt("date"),
        creators=tuple(creators),
        auxiliary_text=_opt("auxiliary_text", "extra"),
        url=_opt("url"),
        doi=_opt("doi", "DOI"),
        isbn=_opt("isbn", "ISBN"),
        issn=_opt("issn", "ISSN"),
    )
