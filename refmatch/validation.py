from __future__ import annotations

import re
from typing import Optional

from .lifecycle import Service
from .logging_setup import get_logger, with_extras
from .models import Creator, RecordHandle

logger = get_logger(__name__)

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 500
MIN_AUTHOR_LENGTH = 2

FORBIDDEN_TITLE_PATTERNS = (
    re.compile(r"^untitled$", re.IGNORECASE),
    re.compile(r"^no\s*title$", re.IGNORECASE),
    re.compile(r"^placeholder$", re.IGNORECASE),
    re.compile(r"^document$", re.IGNORECASE),
    re.compile(r"^\s*$"),
)
FORBIDDEN_AUTHOR_PATTERNS = (
    re.compile(r"^unknown$", re.IGNORECASE),
    re.compile(r"^anonymous$", re.IGNORECASE),
    re.compile(r"^\[s\.n\.\]$", re.IGNORECASE),
    re.compile(r"^n/a$", re.IGNORECASE),
    re.compile(r"^\s*$"),
)


def _matches_any(value: str, patterns) -> bool:
    return any(p.search(value) for p in patterns)


def _strip(value: Optional[str]) -> str:
    return (value or "").strip()


def title_is_valid(title: Optional[str]) -> bool:
    if not title or not isinstance(title, str):
        return False
    trimmed = title.strip()
    if not (MIN_TITLE_LENGTH <= len(trimmed) <= MAX_TITLE_LENGTH):
        return False
    return not _matches_any(trimmed, FORBIDDEN_TITLE_PATTERNS)


def creator_is_valid(creator: Creator) -> bool:
    first = _strip(creator.first_name)
    last = _strip(creator.last_name)
    name = _strip(creator.name)
    if max(len(first), len(last), len(name)) < MIN_AUTHOR_LENGTH:
        return False
    full_name = " ".join(p for p in (first, last) if p) or name
    return not _matches_any(full_name, FORBIDDEN_AUTHOR_PATTERNS)


class ItemValidator(Service):
    """Rejects records whose title or creators are placeholders."""
    service_name = "item-validator"

    def validate_record(self, record: Optional[RecordHandle]) -> bool:
        if record is None:
            logger.debug("Record validation failed: no record")
            return False
        log = with_extras(logger, key=record.key)
        if not title_is_valid(record.title):
            log.debug("Record validation failed: title")
            return False
        if not record.creators:
            log.debug("Record validation failed: no creators")
            return False
        if not any(creator_is_valid(c) for c in record.creators):
            log.debug("Record validation failed: no usable creator names")
            return False
        return True
