from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence

from ..isbn import IsbnCleaner
from ..lifecycle import Service
from ..logging_setup import get_logger, with_extras
from ..models import DuplicateCandidate, DuplicateProcessingResult, IdentifierSet, RecordHandle
from ..urls import UrlNormalizer
from .aggregator import MAX_RETURNED_CANDIDATES, build_result, deduplicate_candidates
from .identifiers import (
    IdentifierKind,
    IsbnCleanerLike,
    UrlNormalizerLike,
    build_identifier_set,
    clean_doi,
    extract_arxiv_id,
    extract_pmid,
)
from .similarity import DEFAULT_WEIGHTS, SimilarityWeights
from .strategies import (
    EXCLUDED_ITEM_TYPES,
    FIELD_AUXILIARY,
    FIELD_DOI,
    FIELD_URL,
    ItemRepository,
    SearchStrategy,
    default_strategies,
)

logger = get_logger(__name__)


def _info(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).info(msg)
    else:
        logger.info(msg)


def _warn(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).warning(msg)
    else:
        logger.warning(msg)


def _exception(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).exception(msg)
    else:
        logger.exception(msg)


def duplicate_confidence(similarity: int) -> str:
    if similarity >= 85:
        return "high"
    if similarity >= 70:
        return "medium"
    return "low"


class DuplicateDetector(Service):
    """
    Finds existing library records that look like the same work as a given
    record. Every strategy runs concurrently; a failing strategy only costs
    recall.
    """
    service_name = "duplicate-detector"

    def __init__(
        self,
        repo: ItemRepository,
        *,
        url_normalizer: Optional[UrlNormalizerLike] = None,
        isbn_cleaner: Optional[IsbnCleanerLike] = None,
        strategies: Optional[Sequence[SearchStrategy]] = None,
        min_similarity: float = 0.7,
        weights: SimilarityWeights = DEFAULT_WEIGHTS,
        max_results: int = MAX_RETURNED_CANDIDATES,
        workers: int = 8,
    ) -> None:
        super().__init__()
        self.repo = repo
        self.url_normalizer = url_normalizer or UrlNormalizer()
        self.isbn_cleaner = isbn_cleaner or IsbnCleaner()
        self.strategies = list(strategies) if strategies is not None else default_strategies(
            repo, self.url_normalizer, min_similarity=min_similarity, weights=weights
        )
        self.max_results = max_results
        self.workers = max(1, workers)

    def identifiers_for(self, record: RecordHandle) -> IdentifierSet:
        return build_identifier_set(record, self.url_normalizer, self.isbn_cleaner)

    def find_candidates(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        active = [s for s in self.strategies if s.applicable(ids)]
        if not active:
            return []
        by_strategy: Dict[int, List[DuplicateCandidate]] = {}
        with ThreadPoolExecutor(max_workers=min(self.workers, len(active))) as executor:
            futures = {executor.submit(s.search, ids, exclude_key): i for i, s in enumerate(active)}
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    hits = future.result()
                except Exception:
                    _exception("Duplicate strategy crashed", strategy=active[idx].name)
                    continue
                if hits:
                    _info("Strategy produced candidates", strategy=active[idx].name, count=len(hits))
                by_strategy[idx] = hits
        # join in strategy order so equal scores resolve the same way every run
        found: List[DuplicateCandidate] = []
        for idx in sorted(by_strategy):
            found.extend(by_strategy[idx])
        return found

    def detect_duplicates(self, record: RecordHandle) -> DuplicateProcessingResult:
        try:
            _info("Detecting duplicates", key=record.key)
            ids = self.identifiers_for(record)
            unique = deduplicate_candidates(self.find_candidates(ids, record.key))
            result = build_result(unique, self.max_results)
            _info(
                "Duplicate detection completed",
                key=record.key,
                duplicate_count=result.duplicate_count,
            )
            return result
        except Exception:
            _exception("Error detecting duplicates", key=getattr(record, "key", None))
            return DuplicateProcessingResult.empty()

    def flag_possible_duplicate(self, record: RecordHandle, candidate: DuplicateCandidate) -> Dict[str, Any]:
        return {
            "itemKey": record.key,
            "itemTitle": record.title or "Untitled",
            "duplicateKey": candidate.key,
            "duplicateTitle": candidate.title,
            "score": candidate.similarity,
            "reason": candidate.match_type,
            "confidence": duplicate_confidence(candidate.similarity),
            "message": f'Possible duplicate detected: "{candidate.title}" ({candidate.match_type})',
        }

    def find_item_by_url(self, url: str) -> Optional[RecordHandle]:
        try:
            normalized = self.url_normalizer.normalize(url)
            domain = self.url_normalizer.domain(normalized)
            for r in self.repo.find_by_contains(FIELD_URL, domain, EXCLUDED_ITEM_TYPES):
                if r.url and self.url_normalizer.normalize(r.url) == normalized:
                    _info("Found existing item by URL", url=url, key=r.key)
                    return r
            return None
        except Exception:
            _exception("Error searching for item by URL", url=url)
            return None

    def find_item_by_identifier(self, kind: IdentifierKind, value: str) -> Optional[RecordHandle]:
        try:
            if kind is IdentifierKind.DOI:
                doi = clean_doi(value) or value
                records = list(self.repo.find_by_exact_field(FIELD_DOI, doi, EXCLUDED_ITEM_TYPES))
            elif kind is IdentifierKind.PMID:
                records = [
                    r for r in self.repo.find_by_contains(FIELD_AUXILIARY, f"PMID: {value}", EXCLUDED_ITEM_TYPES)
                    if extract_pmid(r.auxiliary_text) == value
                ]
            elif kind is IdentifierKind.ARXIV:
                records = [
                    r for r in self.repo.find_by_contains(FIELD_AUXILIARY, value, EXCLUDED_ITEM_TYPES)
                    if (extract_arxiv_id(r.auxiliary_text) or "").lower() == value.lower()
                ]
            else:
                _warn("Unsupported identifier type for lookup", kind=kind.value)
                return None
        except Exception:
            _exception("Error searching for item by identifier", kind=kind.value, value=value)
            return None
        if records:
            _info("Found existing item by identifier", kind=kind.value, count=len(records))
            return records[0]
        return None
