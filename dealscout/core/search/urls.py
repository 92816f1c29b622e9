# dealscout/core/search/urls.py
"""
URL shape helpers shared by the cascade, the scorer and the extraction engine.

- canonical_url(url)        → scheme://host/path with query + fragment stripped
- is_detail_url(url)        → matches a known single-listing page shape
- classify_url(url)         → detail / profile / category / search / home / other
- source_rank(url)          → crexi (0) < other marketplaces (1) < loopnet (2)
- hostname(url)
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

DETAIL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"crexi\.com/property/", re.I),
    re.compile(r"crexi\.com/properties/\d+", re.I),
    re.compile(r"crexi\.com/(sale|lease)/properties/[^/?#]+/[^/?#]+", re.I),
    re.compile(r"realtor\.com/realestateandhomes-detail/", re.I),
    re.compile(r"realtor\.com/commercial/", re.I),
    re.compile(r"propertyshark\.com/.*/Property/", re.I),
    re.compile(r"realnex\.com/listing/", re.I),
    re.compile(r"brevitas\.com/p/", re.I),
    re.compile(r"loopnet\.com/Listing/", re.I),
)

# Crexi shapes that look like listings but are index/profile pages
_NON_DETAIL = re.compile(
    r"crexi\.com/(properties/tenants/|profile/|brokerage/|brokerages/|search|properties/?$|properties\?)",
    re.I,
)
_PROFILE = re.compile(r"/(profile|brokerage|brokerages|agents?|broker)/", re.I)
_SEARCH = re.compile(r"(/search\b|[?&](q|query|keywords?)=)", re.I)
_CATEGORY = re.compile(r"/(properties/tenants|for-sale|for-lease|commercial-real-estate|categories?|types?)(/|$)", re.I)

# Crexi first, LoopNet last (often blocked); everything else in between.
_PREFERRED = "crexi.com"
_DEPRIORITIZED = "loopnet.com"


def hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def canonical_url(url: str) -> str:
    """Strip query string and fragment; lowercase the host. Unparseable input is returned unchanged."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, "", ""))


def is_detail_url(url: str) -> bool:
    if _NON_DETAIL.search(url):
        return False
    return any(rx.search(url) for rx in DETAIL_PATTERNS)


def classify_url(url: str) -> str:
    if is_detail_url(url):
        return "detail"
    if _PROFILE.search(url):
        return "profile"
    if _SEARCH.search(url):
        return "search"
    try:
        path = urlsplit(url).path
    except ValueError:
        return "other"
    if path in ("", "/"):
        return "home"
    if _CATEGORY.search(url):
        return "category"
    return "other"


def host_matches(url: str, domain: str) -> bool:
    host = hostname(url)
    domain = domain.lower().lstrip(".")
    return host == domain or host.endswith("." + domain)


def source_rank(url: str) -> int:
    if host_matches(url, _PREFERRED):
        return 0
    if host_matches(url, _DEPRIORITIZED):
        return 2
    return 1


def site_filter(domains: list[str] | tuple[str, ...]) -> str:
    """`(site:a OR site:b)` clause for a domain allow-list; empty string when no domains."""
    clean = [d.strip() for d in domains if d and d.strip()]
    if not clean:
        return ""
    return "(" + " OR ".join(f"site:{d}" for d in clean) + ")"


__all__ = [
    "DETAIL_PATTERNS",
    "canonical_url",
    "classify_url",
    "host_matches",
    "hostname",
    "is_detail_url",
    "site_filter",
    "source_rank",
]
