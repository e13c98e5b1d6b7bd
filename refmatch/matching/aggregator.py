from __future__ import annotations

from typing import Dict, Iterable, List

from ..models import DuplicateCandidate, DuplicateProcessingResult

MAX_RETURNED_CANDIDATES = 10


def deduplicate_candidates(candidates: Iterable[DuplicateCandidate]) -> List[DuplicateCandidate]:
    """
    Collapse candidates that point at the same record, keeping the highest
    similarity (first seen wins ties), then order by similarity descending.
    """
    best: Dict[str, DuplicateCandidate] = {}
    for cand in candidates:
        current = best.get(cand.key)
        if current is None or cand.similarity > current.similarity:
            best[cand.key] = cand
    return sorted(best.values(), key=lambda c: c.similarity, reverse=True)


def build_result(
    unique: List[DuplicateCandidate],
    limit: int = MAX_RETURNED_CANDIDATES,
) -> DuplicateProcessingResult:
    returned = tuple(unique[: max(0, limit)])
    return DuplicateProcessingResult(
        has_duplicates=bool(unique),
        duplicate_count=len(unique),
        candidates=returned,
        flagged_items=frozenset(c.key for c in returned),
    )
