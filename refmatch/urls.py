from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .logging_setup import get_logger, with_extras

logger = get_logger(__name__)

TRACKING_PARAMS = frozenset({
    "utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term",
    "ref", "referer", "referrer", "source", "fbclid", "gclid",
    "msclkid", "twclid", "_ga", "mc_cid", "mc_eid",
})


def normalize_url(url: str) -> str:
    """
    Canonical form used for equality checks: tracking params removed, host
    lowercased without `www.`, single trailing slash dropped from the path.
    Anything that does not parse as an absolute URL comes back lowercased.
    """
    try:
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.hostname:
            raise ValueError("not an absolute URL")
        host = parts.hostname.lower()
        if host.startswith("www."):
            host = host[4:]
        if parts.port:
            host = f"{host}:{parts.port}"
        path = parts.path
        if path.endswith("/") and len(path) > 1:
            path = path[:-1]
        query = urlencode(
            [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in TRACKING_PARAMS]
        )
        return urlunsplit((parts.scheme.lower(), host, path, query, parts.fragment))
    except Exception as e:
        with_extras(logger, url=url, error=str(e)).debug("URL normalization failed")
        return url.lower()


def extract_domain(url: str) -> str:
    try:
        host = urlsplit(url.strip()).hostname
        if not host:
            raise ValueError("no host")
        return host
    except Exception as e:
        with_extras(logger, url=url, error=str(e)).debug("Domain extraction failed")
        return url


class UrlNormalizer:
    """Adapter handed to the matching core."""

    def normalize(self, url: str) -> str:
        return normalize_url(url)

    def domain(self, url: str) -> str:
        return extract_domain(url)
