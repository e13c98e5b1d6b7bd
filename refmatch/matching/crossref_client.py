from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter, Retry

from ..lifecycle import Service
from ..logging_setup import get_logger, with_extras
from ..models import FetchResult, Found, NotFound, TransportError, WorkRecord
from .identifiers import clean_doi

logger = get_logger(__name__)

CROSSREF_BASE = "https://api.crossref.org"
HTTP_RETRIES = Retry(
    total=3,
    backoff_factor=0.5,
    status_forcelist=(429, 500, 502, 503, 504),
    allowed_methods=("GET",),
    raise_on_status=False,
)


def _debug(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).debug(msg)
    else:
        logger.debug(msg)


def _warn(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).warning(msg)
    else:
        logger.warning(msg)


def make_session(mailto: str) -> requests.Session:
    s = requests.Session()
    s.mount("https://", HTTPAdapter(max_retries=HTTP_RETRIES))
    s.mount("http://", HTTPAdapter(max_retries=HTTP_RETRIES))
    # Crossref asks for a descriptive UA incl. email (polite pool)
    s.headers.update({
        "User-Agent": f"refmatch/1.0 (mailto:{mailto})",
        "Accept": "application/json",
    })
    return s


class CrossRefClient(Service):
    """
    Metadata fetcher for single DOIs. Found works are cached per instance,
    keyed by the cleaned DOI, until teardown(). Concurrent lookups of the
    same DOI may both hit the network; the last write wins.
    """
    service_name = "crossref"

    def __init__(
        self,
        *,
        base_url: str = CROSSREF_BASE,
        mailto: str = "devnull@example.com",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.mailto = mailto
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._cache: Dict[str, WorkRecord] = {}

    def _on_initialize(self) -> None:
        if self._session is None:
            self._session = make_session(self.mailto)
            self._owns_session = True

    def _on_teardown(self) -> None:
        self._cache.clear()
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None

    def fetch(self, doi: str) -> FetchResult:
        self.require_ready()
        clean = clean_doi(doi)
        if not clean:
            _debug("Invalid DOI format", doi=doi)
            return NotFound(doi=str(doi))

        cached = self._cache.get(clean)
        if cached is not None:
            _debug("DOI metadata cache hit", doi=clean)
            return Found(cached)

        url = f"{self.base_url}/works/{quote(clean, safe='')}"
        try:
            r = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            _warn("Crossref network error", doi=clean, error=str(e))
            return TransportError(doi=clean, message=str(e))

        if r.status_code == 404:
            _debug("DOI not found in Crossref", doi=clean)
            return NotFound(doi=clean)
        if r.status_code != 200:
            body = (r.text or "")[:300]
            _warn("Crossref HTTP error", doi=clean, status=r.status_code, body=body)
            return TransportError(doi=clean, message=f"HTTP {r.status_code}")

        try:
            payload = r.json()
        except ValueError as e:
            _warn("Crossref returned invalid JSON", doi=clean, error=str(e))
            return TransportError(doi=clean, message="invalid JSON")

        if not isinstance(payload, dict):
            payload = {}
        message = payload.get("message")
        if payload.get("status") != "ok" or not isinstance(message, dict) or not message.get("DOI"):
            _debug("Crossref response without a work", doi=clean)
            return NotFound(doi=clean)

        work = WorkRecord.from_crossref(message)
        self._cache[clean] = work
        _debug("DOI metadata retrieved", doi=clean)
        return Found(work)

    def get_metadata(self, doi: str) -> Optional[WorkRecord]:
        result = self.fetch(doi)
        return result.work if isinstance(result, Found) else None

    def validate_doi(self, doi: str) -> bool:
        return isinstance(self.fetch(doi), Found)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        keys = list(self._cache.keys())
        return {"size": len(keys), "keys": keys}
