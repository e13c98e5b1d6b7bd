from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "runtime.toml"


@dataclass(frozen=True)
class DuplicateDetectionConfig:
    title_weight: float
    author_weight: float
    year_weight: float
    min_title_similarity: float
    max_results: int
    workers: int


@dataclass(frozen=True)
class DisambiguationConfig:
    max_candidates: int
    title_similarity_weight: float
    url_priority_weight: float
    content_position_weight: float
    minimum_confidence_score: int


@dataclass(frozen=True)
class CrossRefConfig:
    base_url: str
    mailto: str
    timeout_seconds: float


@dataclass(frozen=True)
class RuntimeConfig:
    duplicates: DuplicateDetectionConfig
    disambiguation: DisambiguationConfig
    crossref: CrossRefConfig


def _default_config() -> RuntimeConfig:
    return RuntimeConfig(
        duplicates=DuplicateDetectionConfig(
            title_weight=0.4,
            author_weight=0.3,
            year_weight=0.2,
            min_title_similarity=0.7,
            max_results=10,
            workers=8,
        ),
        disambiguation=DisambiguationConfig(
            max_candidates=5,
            title_similarity_weight=0.4,
            url_priority_weight=0.4,
            content_position_weight=0.2,
            minimum_confidence_score=30,
        ),
        crossref=CrossRefConfig(
            base_url="https://api.crossref.org",
            mailto=os.environ.get("CROSSREF_MAILTO") or "devnull@example.com",
            timeout_seconds=10.0,
        ),
    )


def _safe_int(value: Any, fallback: int) -> int:
    try:
        parsed = int(value)
        return parsed if parsed > 0 else fallback
    except Exception:
        return fallback


def _safe_score(value: Any, fallback: int) -> int:
    # thresholds on the 0..100 scale; 0 is a legitimate "keep everything"
    try:
        parsed = int(value)
    except Exception:
        return fallback
    return parsed if 0 <= parsed <= 100 else fallback


def _safe_weight(value: Any, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        parsed = float(value)
    except Exception:
        return fallback
    return parsed if 0.0 <= parsed <= 1.0 else fallback


def _section(raw: Any, name: str) -> dict:
    section = raw.get(name) if isinstance(raw, dict) else None
    return section if isinstance(section, dict) else {}


def load_runtime_config(config_path: Optional[Path] = None) -> RuntimeConfig:
    cfg = _default_config()
    path = config_path or _DEFAULT_CONFIG_PATH
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        logger.warning("Runtime config file not found; using defaults", extra={"path": str(path)})
        return cfg
    except tomllib.TOMLDecodeError:
        logger.exception("Runtime config parse failed; using defaults", extra={"path": str(path)})
        return cfg
    except Exception:
        logger.exception("Runtime config load failed; using defaults", extra={"path": str(path)})
        return cfg

    dup_raw = _section(raw, "duplicate_detection")
    dis_raw = _section(raw, "disambiguation")
    cr_raw = _section(raw, "crossref")
    d = cfg.duplicates
    s = cfg.disambiguation

    duplicates = DuplicateDetectionConfig(
        title_weight=_safe_weight(dup_raw.get("title_weight", d.title_weight), d.title_weight),
        author_weight=_safe_weight(dup_raw.get("author_weight", d.author_weight), d.author_weight),
        year_weight=_safe_weight(dup_raw.get("year_weight", d.year_weight), d.year_weight),
        min_title_similarity=_safe_weight(
            dup_raw.get("min_title_similarity", d.min_title_similarity), d.min_title_similarity
        ),
        max_results=_safe_int(dup_raw.get("max_results", d.max_results), d.max_results),
        workers=_safe_int(dup_raw.get("workers", d.workers), d.workers),
    )

    disambiguation = DisambiguationConfig(
        max_candidates=_safe_int(dis_raw.get("max_candidates", s.max_candidates), s.max_candidates),
        title_similarity_weight=_safe_weight(
            dis_raw.get("title_similarity_weight", s.title_similarity_weight), s.title_similarity_weight
        ),
        url_priority_weight=_safe_weight(
            dis_raw.get("url_priority_weight", s.url_priority_weight), s.url_priority_weight
        ),
        content_position_weight=_safe_weight(
            dis_raw.get("content_position_weight", s.content_position_weight), s.content_position_weight
        ),
        minimum_confidence_score=_safe_score(
            dis_raw.get("minimum_confidence_score", s.minimum_confidence_score), s.minimum_confidence_score
        ),
    )

    base_url = cr_raw.get("base_url", cfg.crossref.base_url)
    if not isinstance(base_url, str) or not base_url.strip():
        base_url = cfg.crossref.base_url
    mailto = cr_raw.get("mailto") or cfg.crossref.mailto
    if not isinstance(mailto, str) or "@" not in mailto:
        mailto = cfg.crossref.mailto
    try:
        timeout = float(cr_raw.get("timeout_seconds", cfg.crossref.timeout_seconds))
        if timeout <= 0:
            timeout = cfg.crossref.timeout_seconds
    except Exception:
        timeout = cfg.crossref.timeout_seconds

    return RuntimeConfig(
        duplicates=duplicates,
        disambiguation=disambiguation,
        crossref=CrossRefConfig(
            base_url=base_url.strip().rstrip("/"),
            mailto=mailto.strip(),
            timeout_seconds=timeout,
        ),
    )

