# dealscout/core/scoring/signals.py
"""
Signal parser: raw (title, snippet, url) → typed CandidateSignals.

All free-text heuristics live here so the scorer only ever sees typed fields.
"""

from __future__ import annotations

import re

from dealscout.core.normalize.money import parse_cap_rate, parse_money, parse_noi, strip_noi
from dealscout.core.search.urls import classify_url, hostname
from dealscout.schemas.models import CandidateSignals

# Canonical tenant name → accepted spellings
TENANT_ALLOWLIST: dict[str, tuple[str, ...]] = {
    "7-eleven": ("7-eleven", "7 eleven", "7eleven"),
    "cvs": ("cvs",),
    "walgreens": ("walgreens",),
    "walmart": ("walmart",),
    "starbucks": ("starbucks",),
    "chipotle": ("chipotle",),
    "chick-fil-a": ("chick-fil-a", "chick fil a"),
    "tractor supply": ("tractor supply",),
    "dollar general": ("dollar general",),
    "family dollar": ("family dollar",),
    "albertsons": ("albertsons",),
    "kroger": ("kroger",),
    "home depot": ("home depot",),
    "lowe's": ("lowe's", "lowes"),
    "target": ("target",),
    "costco": ("costco",),
    "publix": ("publix",),
    "aldi": ("aldi",),
    "whole foods": ("whole foods",),
    "trader joe's": ("trader joe's", "trader joes"),
    "amazon": ("amazon",),
    "fedex": ("fedex",),
    "ups": ("ups",),
    "dhl": ("dhl",),
}

INDUSTRIAL_HINTS = (
    "industrial", "warehouse", "distribution", "logistics", "last mile", "truck", "yard",
    "outdoor storage", "ios", "equipment", "fabrication", "manufacturing", "flex",
    "cross-dock", "dock-high", "cold storage",
)
NNN_HINTS = ("nnn", "triple net", "absolute net", "bondable", "net lease")
TERM_HINTS = (
    "long-term", "long term", "15-year", "20-year", "25-year", "corporate guaranteed",
    "investment grade", "s&p", "moody",
)
GUARANTEE_HINTS = ("corporate", "guarantee", "credit tenant", "investment grade")


def _phrase_re(words: tuple[str, ...] | list[str]) -> re.Pattern[str]:
    alts = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<![a-z0-9])(?:{alts})(?![a-z0-9])", re.IGNORECASE)


_INDUSTRIAL_RE = _phrase_re(INDUSTRIAL_HINTS)
_NNN_RE = _phrase_re(NNN_HINTS)
_TERM_RE = _phrase_re(TERM_HINTS)
_GUARANTEE_RE = _phrase_re(GUARANTEE_HINTS)
_TENANT_RES = [(name, _phrase_re(list(spellings))) for name, spellings in TENANT_ALLOWLIST.items()]

_SALE_URL = re.compile(r"/sale/", re.I)
_LEASE_URL = re.compile(r"/lease/", re.I)
_SALE_TEXT = re.compile(r"\bfor sale\b", re.I)
_LEASE_TEXT = re.compile(r"\blease\b", re.I)

# Priority order when several states are mentioned
_STATES = (
    ("FL", re.compile(r"florida\b|\bfl\b", re.I), re.compile(r"/fl(/|$|\?|-)", re.I)),
    ("TX", re.compile(r"texas\b|\btx\b", re.I), re.compile(r"/tx(/|$|\?|-)", re.I)),
    ("CA", re.compile(r"california\b|\bca\b", re.I), re.compile(r"/ca(/|$|\?|-)", re.I)),
)

_WANTS_INDUSTRIAL = re.compile(r"industrial|warehouse|\bios\b|outdoor storage|logistics", re.I)


def match_tenant(text: str) -> str | None:
    for name, rx in _TENANT_RES:
        if rx.search(text):
            return name
    return None


def detect_state(text: str, url: str = "") -> str | None:
    for code, text_rx, url_rx in _STATES:
        if text_rx.search(text) or url_rx.search(url):
            return code
    return None


def wants_industrial(query: str | None) -> bool:
    return bool(query and _WANTS_INDUSTRIAL.search(query))


def parse_signals(title: str, snippet: str, url: str) -> CandidateSignals:
    """Parse every scoring signal once from untrusted search text."""
    text = f"{title or ''} {snippet or ''}"

    noi = parse_noi(text)
    # keep the NOI figure from being read as the asking price
    price = parse_money(strip_noi(text))

    return CandidateSignals(
        price=price,
        cap_rate=parse_cap_rate(text),
        noi=noi,
        tenant=match_tenant(text),
        long_term=bool(_TERM_RE.search(text)),
        guarantee=bool(_GUARANTEE_RE.search(text)),
        net_lease=bool(_NNN_RE.search(text)),
        industrial=bool(_INDUSTRIAL_RE.search(text)),
        for_sale=bool(_SALE_URL.search(url) or _SALE_TEXT.search(text)),
        for_lease=bool(_LEASE_URL.search(url) or _LEASE_TEXT.search(text)),
        state=detect_state(text, url),
        url_kind=classify_url(url),
        host=hostname(url) or None,
    )


__all__ = [
    "TENANT_ALLOWLIST",
    "INDUSTRIAL_HINTS",
    "NNN_HINTS",
    "TERM_HINTS",
    "match_tenant",
    "detect_state",
    "wants_industrial",
    "parse_signals",
]
