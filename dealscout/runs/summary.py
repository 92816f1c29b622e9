# dealscout/runs/summary.py
"""Score-only portfolio synthesis over ranked candidates (no page extraction)."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from dealscout.schemas.models import PortfolioSummary, ScoredCandidate

SCORE_BANDS: tuple[tuple[str, int, int], ...] = (
    ("80-100", 80, 100),
    ("60-79", 60, 79),
    ("40-59", 40, 59),
    ("0-39", 0, 39),
)


def _band(score: int) -> str:
    for name, low, high in SCORE_BANDS:
        if low <= score <= high:
            return name
    return SCORE_BANDS[-1][0]


def build_portfolio_summary(candidates: Sequence[ScoredCandidate], *, top_n: int = 5) -> PortfolioSummary:
    if not candidates:
        return PortfolioSummary(score_buckets={name: 0 for name, _, _ in SCORE_BANDS})

    buckets = Counter({name: 0 for name, _, _ in SCORE_BANDS})
    buckets.update(_band(c.score) for c in candidates)
    geography = Counter(c.signals.state or "other" for c in candidates)
    caps = [c.signals.cap_rate for c in candidates if c.signals.cap_rate is not None]
    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)

    return PortfolioSummary(
        candidate_count=len(candidates),
        score_buckets=dict(buckets),
        geography=dict(geography.most_common()),
        average_score=round(sum(c.score for c in candidates) / len(candidates), 1),
        average_cap_rate=round(sum(caps) / len(caps), 4) if caps else None,
        top=ranked[:top_n],
    )


def summary_lines(summary: PortfolioSummary) -> list[str]:
    """Short narrative fragments for answer_chunk events."""
    if summary.candidate_count == 0:
        return ["No candidates to summarize. "]
    lines = [f"Scored {summary.candidate_count} candidate listings (average score {summary.average_score}). "]
    bands = ", ".join(f"{k}: {v}" for k, v in summary.score_buckets.items() if v)
    if bands:
        lines.append(f"Score distribution: {bands}. ")
    geo = ", ".join(f"{k}: {v}" for k, v in summary.geography.items())
    if geo:
        lines.append(f"Geography: {geo}. ")
    if summary.average_cap_rate is not None:
        lines.append(f"Average stated cap rate {summary.average_cap_rate * 100:.2f}%. ")
    for i, c in enumerate(summary.top, start=1):
        label = f" ({c.label})" if c.label else ""
        lines.append(f"[{i}] {c.title or c.url} scored {c.score}{label}. ")
    return lines


__all__ = ["SCORE_BANDS", "build_portfolio_summary", "summary_lines"]
