from __future__ import annotations

import re
from typing import Optional

_SEPARATORS = re.compile(r"[\s\-]")


def _isbn10_ok(digits: str) -> bool:
    if not re.fullmatch(r"\d{9}[\dX]", digits):
        return False
    total = 0
    for i, ch in enumerate(digits):
        value = 10 if ch == "X" else int(ch)
        total += (10 - i) * value
    return total % 11 == 0


def _isbn13_ok(digits: str) -> bool:
    if not re.fullmatch(r"97[89]\d{10}", digits):
        return False
    total = sum(int(ch) * (1 if i % 2 == 0 else 3) for i, ch in enumerate(digits))
    return total % 10 == 0


def clean_isbn(candidate: Optional[str]) -> Optional[str]:
    """Return the separator-free ISBN-10/13 if its checksum holds, else None."""
    if not candidate:
        return None
    value = re.sub(r"^isbn(?:-1[03])?:?", "", candidate.strip(), flags=re.IGNORECASE)
    digits = _SEPARATORS.sub("", value).upper()
    if len(digits) == 10 and _isbn10_ok(digits):
        return digits
    if len(digits) == 13 and _isbn13_ok(digits):
        return digits
    return None


class IsbnCleaner:
    def clean(self, candidate: str) -> Optional[str]:
        return clean_isbn(candidate)
