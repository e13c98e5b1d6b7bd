from __future__ import annotations

from typing import List, Optional

import requests

from .lifecycle import Service
from .logging_setup import get_logger
from .matching.crossref_client import CrossRefClient
from .matching.doi_disambiguation import DisambiguationOptions, DOIDisambiguator
from .matching.duplicate_detection import DuplicateDetector
from .matching.similarity import SimilarityWeights
from .matching.strategies import ItemRepository
from .runtime_config import RuntimeConfig, load_runtime_config
from .validation import ItemValidator

logger = get_logger(__name__)


class ServiceManager:
    """
    Builds the matching services from one RuntimeConfig and owns their
    lifecycle. Services are initialized in dependency order and torn down in
    reverse.
    """

    def __init__(
        self,
        repo: Optional[ItemRepository] = None,
        config: Optional[RuntimeConfig] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        cfg = config or load_runtime_config()
        self.config = cfg
        self.crossref = CrossRefClient(
            base_url=cfg.crossref.base_url,
            mailto=cfg.crossref.mailto,
            timeout=cfg.crossref.timeout_seconds,
            session=session,
        )
        d = cfg.disambiguation
        self.disambiguator = DOIDisambiguator(
            self.crossref,
            DisambiguationOptions(
                max_candidates=d.max_candidates,
                title_similarity_weight=d.title_similarity_weight,
                url_priority_weight=d.url_priority_weight,
                content_position_weight=d.content_position_weight,
                minimum_confidence_score=d.minimum_confidence_score,
            ),
        )
        dup = cfg.duplicates
        # detection needs an item repository; disambiguation alone does not
        self.detector: Optional[DuplicateDetector] = None
        if repo is not None:
            self.detector = DuplicateDetector(
                repo,
                min_similarity=dup.min_title_similarity,
                weights=SimilarityWeights(
                    title=dup.title_weight, author=dup.author_weight, year=dup.year_weight
                ),
                max_results=dup.max_results,
                workers=dup.workers,
            )
        self.validator = ItemValidator()

    @property
    def services(self) -> List[Service]:
        found = [self.crossref, self.disambiguator, self.detector, self.validator]
        return [s for s in found if s is not None]

    def initialize_all(self) -> None:
        started: List[Service] = []
        try:
            for svc in self.services:
                svc.initialize()
                started.append(svc)
        except Exception:
            logger.exception("Service initialization failed; tearing down")
            for svc in reversed(started):
                try:
                    svc.teardown()
                except Exception:
                    logger.exception(f"Teardown of {svc.service_name} failed")
            raise

    def teardown_all(self) -> None:
        for svc in reversed(self.services):
            try:
                svc.teardown()
            except Exception:
                logger.exception(f"Teardown of {svc.service_name} failed")

    def __enter__(self) -> "ServiceManager":
        self.initialize_all()
        return self

    def __exit__(self, *exc) -> None:
        self.teardown_all()
