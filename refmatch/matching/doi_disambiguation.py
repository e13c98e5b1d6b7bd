from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from ..lifecycle import Service, ServiceNotReadyError
from ..logging_setup import get_logger, with_extras
from ..models import (
    Confidence,
    DisambiguationResult,
    FetchResult,
    Found,
    TransportError,
)
from .identifiers import clean_doi
from .similarity import clamp_score, title_similarity

logger = get_logger(__name__)

# positional signals are not computed yet; every DOI gets the same medium score
PLACEHOLDER_URL_PRIORITY = 70
PLACEHOLDER_CONTENT_POSITION = 70
HIGH_CONFIDENCE_MIN = 80
MEDIUM_CONFIDENCE_MIN = 60


def _info(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).info(msg)
    else:
        logger.info(msg)


class MetadataFetcher(Protocol):
    def fetch(self, doi: str) -> FetchResult: ...

    def is_ready(self) -> bool: ...


@dataclass(frozen=True)
class DisambiguationOptions:
    max_candidates: int = 5
    title_similarity_weight: float = 0.4
    url_priority_weight: float = 0.4
    content_position_weight: float = 0.2
    minimum_confidence_score: int = 30


@dataclass(frozen=True)
class PositionalSignals:
    """Per-DOI url/content scores supplied by an extractor that knows them."""
    url_priority: int = PLACEHOLDER_URL_PRIORITY
    content_position: int = PLACEHOLDER_CONTENT_POSITION


def classify_confidence(final_score: int) -> Confidence:
    if final_score >= HIGH_CONFIDENCE_MIN:
        return Confidence.HIGH
    if final_score >= MEDIUM_CONFIDENCE_MIN:
        return Confidence.MEDIUM
    return Confidence.LOW


def weighted_final_score(
    title_sim: int,
    url_priority: int,
    content_position: int,
    options: DisambiguationOptions,
) -> int:
    return clamp_score(
        title_sim * options.title_similarity_weight
        + url_priority * options.url_priority_weight
        + content_position * options.content_position_weight
    )


def _failed_result(doi: str) -> DisambiguationResult:
    return DisambiguationResult(
        doi=doi,
        final_score=0,
        title_similarity=0,
        url_priority=0,
        content_position=0,
        metadata=None,
        is_valid=False,
        confidence=Confidence.LOW,
    )


def unique_clean_dois(candidate_dois: Sequence[str], max_candidates: int) -> List[str]:
    out: List[str] = []
    seen = set()
    for raw in list(candidate_dois)[: max(0, max_candidates)]:
        doi = clean_doi(raw)
        if not doi:
            continue
        # CrossRef DOIs are case-insensitive
        key = doi.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(doi)
    return out


class DOIDisambiguator(Service):
    """
    Ranks competing DOI candidates from one source document against the
    document's title. One failed lookup never affects the other candidates.
    """
    service_name = "doi-disambiguator"

    def __init__(self, fetcher: MetadataFetcher, defaults: Optional[DisambiguationOptions] = None) -> None:
        super().__init__()
        self.fetcher = fetcher
        self.defaults = defaults or DisambiguationOptions()

    def _score_one(
        self,
        doi: str,
        page_title: str,
        outcome: FetchResult,
        signals: PositionalSignals,
        options: DisambiguationOptions,
    ) -> DisambiguationResult:
        if isinstance(outcome, TransportError):
            return _failed_result(doi)

        metadata = outcome.work if isinstance(outcome, Found) else None
        title_sim = 0
        if metadata is not None and metadata.title:
            title_sim = title_similarity(page_title, metadata.title[0])
        url_priority = max(0, min(100, int(signals.url_priority)))
        content_position = max(0, min(100, int(signals.content_position)))
        final = weighted_final_score(title_sim, url_priority, content_position, options)
        with_extras(
            logger, doi=doi, score=final, title_similarity=title_sim, valid=metadata is not None
        ).debug("DOI candidate scored")
        return DisambiguationResult(
            doi=doi,
            final_score=final,
            title_similarity=title_sim,
            url_priority=url_priority,
            content_position=content_position,
            metadata=metadata,
            is_valid=metadata is not None,
            confidence=classify_confidence(final),
        )

    def _fetch_safely(self, doi: str) -> FetchResult:
        try:
            return self.fetcher.fetch(doi)
        except ServiceNotReadyError:
            raise
        except Exception as e:
            with_extras(logger, doi=doi).exception("Metadata fetch raised")
            return TransportError(doi=doi, message=str(e))

    def disambiguate(
        self,
        candidate_dois: Sequence[str],
        page_title: str,
        options: Optional[DisambiguationOptions] = None,
        *,
        signals: Optional[Mapping[str, PositionalSignals]] = None,
        **overrides: Any,
    ) -> List[DisambiguationResult]:
        self.require_ready()
        if not self.fetcher.is_ready():
            raise ServiceNotReadyError("metadata fetcher is not initialized")

        opts = options or self.defaults
        if overrides:
            opts = replace(opts, **overrides)
        signals = signals or {}

        dois = unique_clean_dois(candidate_dois, opts.max_candidates)
        _info(
            "Disambiguating DOI candidates",
            received=len(candidate_dois),
            unique=len(dois),
            page_title=(page_title or "")[:160],
        )
        if not dois:
            return []

        with ThreadPoolExecutor(max_workers=min(len(dois), max(1, opts.max_candidates))) as executor:
            fetched = list(executor.map(self._fetch_safely, dois))
        outcomes = list(zip(dois, fetched))

        results: List[DisambiguationResult] = []
        for doi, outcome in outcomes:
            lookup = signals.get(doi) or signals.get(doi.lower()) or PositionalSignals()
            try:
                results.append(self._score_one(doi, page_title or "", outcome, lookup, opts))
            except Exception:
                with_extras(logger, doi=doi).exception("Error processing DOI candidate")
                results.append(_failed_result(doi))

        results.sort(key=lambda r: r.final_score, reverse=True)
        filtered = [r for r in results if r.final_score >= opts.minimum_confidence_score]

        _info(
            "DOI disambiguation completed",
            above_threshold=len(filtered),
            threshold=opts.minimum_confidence_score,
        )
        if filtered:
            best = filtered[0]
            _info("Best DOI match", doi=best.doi, score=best.final_score, confidence=best.confidence.value)
        return filtered

    def best_match(self, candidate_dois: Sequence[str], page_title: str, **kwargs: Any) -> Optional[DisambiguationResult]:
        results = self.disambiguate(candidate_dois, page_title, **kwargs)
        return results[0] if results else None


def summarize(results: Sequence[DisambiguationResult]) -> Dict[str, Any]:
    return {
        "count": len(results),
        "best": results[0].to_dict() if results else None,
        "results": [r.to_dict() for r in results],
    }
