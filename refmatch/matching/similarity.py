from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional

from rapidfuzz.distance import Levenshtein

# Exact normalized title equality scores 95, not 100: identifier matches use
# 95-99 and downstream ranking depends on fuzzy matches staying below them.
EXACT_TITLE_SCORE = 95
SURNAME_CONTAINMENT_SCORE = 85

_NON_WORD = re.compile(r"[^\w\s]")
_WS = re.compile(r"\s+")
_BARE_SURNAME = re.compile(r"^[a-z]+$")


@dataclass(frozen=True)
class SimilarityWeights:
    title: float = 0.4
    author: float = 0.3
    year: float = 0.2


DEFAULT_WEIGHTS = SimilarityWeights()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def normalize_title(title: Optional[str]) -> str:
    if not title:
        return ""
    lowered = _NON_WORD.sub("", title.lower())
    return _WS.sub(" ", lowered).strip()


def levenshtein_ratio(a: str, b: str) -> float:
    """(maxLen - editDistance) / maxLen; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - Levenshtein.distance(a, b)) / longest


def title_similarity(title1: Optional[str], title2: Optional[str]) -> int:
    if not title1 or not title2:
        return 0
    n1 = normalize_title(title1)
    n2 = normalize_title(title2)
    if n1 == n2:
        return EXACT_TITLE_SCORE
    ratio = levenshtein_ratio(n1, n2)
    if ratio >= 0.95:
        return 90
    if ratio >= 0.90:
        return 85
    if ratio >= 0.80:
        return 75
    if ratio >= 0.70:
        return 65
    return clamp_score(ratio * 60)


def author_similarity(author1: Optional[str], author2: Optional[str]) -> int:
    a = (author1 or "").strip().lower()
    b = (author2 or "").strip().lower()
    if not a or not b:
        return 0
    if a == b:
        return 100
    if _BARE_SURNAME.match(a) or _BARE_SURNAME.match(b):
        if a in b or b in a:
            return SURNAME_CONTAINMENT_SCORE
    return clamp_score(levenshtein_ratio(a, b) * 100)


def year_similarity(year1: Optional[int], year2: Optional[int]) -> Optional[int]:
    """100/80/60 for a 0/1/2 year gap; None drops the factor entirely."""
    if year1 is None or year2 is None:
        return None
    diff = abs(int(year1) - int(year2))
    if diff == 0:
        return 100
    if diff == 1:
        return 80
    if diff == 2:
        return 60
    return None


def combined_similarity(
    title1: Optional[str],
    title2: Optional[str],
    author1: Optional[str] = None,
    author2: Optional[str] = None,
    year1: Optional[int] = None,
    year2: Optional[int] = None,
    weights: SimilarityWeights = DEFAULT_WEIGHTS,
) -> int:
    total = 0.0
    weight_sum = 0.0

    if title1 and title2:
        total += title_similarity(title1, title2) * weights.title
        weight_sum += weights.title

    if author1 and author2:
        total += author_similarity(author1, author2) * weights.author
        weight_sum += weights.author

    year_score = year_similarity(year1, year2)
    if year_score is not None:
        total += year_score * weights.year
        weight_sum += weights.year

    if weight_sum <= 0:
        return 0
    return clamp_score(total / weight_sum)
