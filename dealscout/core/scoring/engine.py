# dealscout/core/scoring/engine.py
"""
Deterministic 0–100 quality score for search candidates.

Five capped factors are summed:

    relevance    ≤ 30   asset type + geography + fit to an industrial query
    tenant       ≤ 20   allow-listed credit tenant + long-term lease language
    lease        ≤ 15   sale/lease posture + net-lease language
    yield        ≤ 20   stated cap rate + implied NOI / price
    url_quality  ≤ 15   detail page vs profile/index page

Every factor is an integer in [0, cap], so the total is already in [0, 100].
No I/O; the same inputs always give the same ScoredCandidate.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dealscout.schemas.models import CandidateSignals, ScoredCandidate, ScoreFactors, SearchHit

from .signals import parse_signals, wants_industrial

logger = logging.getLogger(__name__)

RELEVANCE_CAP = 30
TENANT_CAP = 20
LEASE_CAP = 15
YIELD_CAP = 20
URL_QUALITY_CAP = 15


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _relevance(s: CandidateSignals, query: str | None) -> int:
    rel = 22 if s.industrial else 8
    if s.state:
        rel += 8
    if wants_industrial(query) and s.industrial:
        rel += 6
    return _clamp(rel, 0, RELEVANCE_CAP)


def _tenant(s: CandidateSignals) -> int:
    return _clamp((16 if s.tenant else 0) + (4 if s.long_term else 0), 0, TENANT_CAP)


def _lease(s: CandidateSignals) -> int:
    return _clamp((5 if s.for_sale or s.for_lease else 0) + (10 if s.net_lease else 0), 0, LEASE_CAP)


def _yield(s: CandidateSignals) -> int:
    # 4% cap scores 0, 8% scores 16, 9% and up saturates
    total = 0
    if s.cap_rate is not None:
        total += _clamp(round((s.cap_rate * 100 - 4) * 4), 0, 20)
    implied = s.implied_cap_rate
    if implied is not None:
        total += _clamp(round((implied * 100 - 4) * 2), 0, 8)
    return _clamp(total, 0, YIELD_CAP)


def _url_quality(s: CandidateSignals) -> int:
    score = 10
    host = s.host or ""
    if s.url_kind == "detail" and host.endswith("crexi.com"):
        score += 5
    elif s.url_kind == "detail" and host.endswith("loopnet.com"):
        score += 3
    if s.url_kind == "profile":
        score -= 5
    return _clamp(score, 0, URL_QUALITY_CAP)


def score_signals(signals: CandidateSignals, query: str | None = None) -> ScoreFactors:
    """Pure factor computation over typed signals."""
    return ScoreFactors(
        relevance=_relevance(signals, query),
        tenant=_tenant(signals),
        lease=_lease(signals),
        yield_=_yield(signals),
        url_quality=_url_quality(signals),
    )


def build_label(s: CandidateSignals) -> str:
    """'Industrial · NNN · CVS · 6.5% Cap · $4.2M · TX'"""
    parts = [
        "Industrial" if s.industrial else "Other",
        "NNN" if s.net_lease else None,
        s.tenant.upper() if s.tenant else None,
        f"{s.cap_rate * 100:.1f}% Cap" if s.cap_rate is not None else None,
        f"${s.price / 1_000_000:.1f}M" if s.price else None,
        s.state,
    ]
    return " · ".join(p for p in parts if p)


def build_rationale(s: CandidateSignals, f: ScoreFactors, total: int) -> str:
    """One analyst-style sentence per notable factor, joined into a paragraph."""
    notes: list[str] = []
    asset = "Industrial/logistics asset" if s.industrial else "Non-industrial asset"
    notes.append(f"{asset}{f' in {s.state}' if s.state else ''} (relevance {f.relevance}/{RELEVANCE_CAP}).")
    if s.tenant:
        term = " on long-term lease language" if s.long_term else ""
        notes.append(f"Credit tenant {s.tenant.title()}{term} (tenant {f.tenant}/{TENANT_CAP}).")
    elif s.long_term:
        notes.append(f"Long-term lease language without a recognized tenant (tenant {f.tenant}/{TENANT_CAP}).")
    if s.net_lease:
        notes.append(f"Net-lease structure mentioned (lease {f.lease}/{LEASE_CAP}).")
    if s.cap_rate is not None:
        notes.append(f"Stated cap rate {s.cap_rate * 100:.2f}% (yield {f.yield_}/{YIELD_CAP}).")
    elif s.implied_cap_rate is not None:
        notes.append(f"Implied cap rate {s.implied_cap_rate * 100:.2f}% from NOI/price (yield {f.yield_}/{YIELD_CAP}).")
    else:
        notes.append("No yield data in the listing text.")
    if s.url_kind == "profile":
        notes.append("URL is a broker/profile page, not a listing.")
    elif s.url_kind != "detail":
        notes.append(f"URL looks like a {s.url_kind} page.")
    notes.append(f"Overall {total}/100.")
    return " ".join(notes)


def score_candidate(hit: SearchHit, query: str | None = None) -> ScoredCandidate:
    signals = parse_signals(hit.title, hit.snippet, hit.url)
    factors = score_signals(signals, query)
    total = _clamp(factors.total(), 0, 100)
    return ScoredCandidate(
        title=hit.title,
        url=hit.url,
        snippet=hit.snippet,
        score=total,
        label=build_label(signals),
        factors=factors,
        signals=signals,
        rationale=build_rationale(signals, factors, total),
    )


def rank_candidates(hits: Iterable[SearchHit], query: str | None = None) -> list[ScoredCandidate]:
    """Score every hit and sort by score descending; ties keep input order."""
    scored = [score_candidate(h, query) for h in hits]
    scored.sort(key=lambda c: c.score, reverse=True)
    if scored:
        logger.debug(
            "Scored %d candidates; top: %s",
            len(scored),
            ", ".join(f"{c.score} ({c.title[:40]})" for c in scored[:3]),
        )
    return scored


__all__ = [
    "score_signals",
    "score_candidate",
    "rank_candidates",
    "build_label",
    "build_rationale",
]
