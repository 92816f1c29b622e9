# dealscout/market/risk.py
"""
Blend optional macro signals into a 0–100 risk score with an analyst note.

Baseline is 50 (neutral). Each available signal adds a bounded delta:

    rate         10Y level vs 3.5%           ±20
    rate_trend   10Y month-over-month bps     ±6
    curve        2s10s spread (inversion ↑)  ±10
    inflation    CPI YoY vs 2.5%              ±8
    labor        metro (or national) U/E     ±10
    news         negative minus positive      ±8

Signals are grouped into categories (rates, inflation, labor, news). With fewer
than two categories present the deviation from 50 is multiplied by
LOW_CONFIDENCE_SHRINK and the removed amount is recorded as `low_confidence`.
"""

from __future__ import annotations

import re

from dealscout.schemas.models import MacroSignals, NewsItem, RiskResult

BASELINE = 50.0
LOW_CONFIDENCE_SHRINK = 0.6
MIN_CATEGORIES = 2

RATE_ANCHOR = 0.035
CPI_ANCHOR = 0.025
NATIONAL_UE_ANCHOR = 0.04

_NEG_NEWS = re.compile(r"closure|bankruptcy|downgrade|lawsuit|layoff|default|distress", re.I)
_POS_NEWS = re.compile(r"expansion|opening|upgrade|acquire|record|investment", re.I)

CATEGORY_ORDER = ("rates", "inflation", "labor", "news")


def _bounded(value: float, cap: float) -> int:
    return int(max(-cap, min(cap, round(value))))


def news_counts(news: list[NewsItem]) -> tuple[int, int]:
    neg = sum(1 for n in news if _NEG_NEWS.search(n.title))
    pos = sum(1 for n in news if _POS_NEWS.search(n.title))
    return neg, pos


def blend_risk(signals: MacroSignals | None = None) -> RiskResult:
    s = signals or MacroSignals()
    factors: dict[str, float] = {}
    notes: list[str] = []
    categories: set[str] = set()

    if s.treasury_10y is not None:
        add = _bounded((s.treasury_10y - RATE_ANCHOR) * 1000, 20)
        factors["rate"] = add
        categories.add("rates")
        notes.append(f"10Y ≈ {s.treasury_10y * 100:.2f}% (rate {add:+d})")

    if s.treasury_10y_delta_bps is not None:
        add = _bounded(s.treasury_10y_delta_bps / 5, 6)
        factors["rate_trend"] = add
        categories.add("rates")
        notes.append(f"10Y MoM {s.treasury_10y_delta_bps:+.0f}bps (trend {add:+d})")

    if s.curve_2s10s is not None:
        add = _bounded(-s.curve_2s10s * 1000, 10)
        factors["curve"] = add
        categories.add("rates")
        shape = "inverted" if s.curve_2s10s < 0 else "positive"
        notes.append(f"2s10s {s.curve_2s10s * 100:+.2f}% {shape} (curve {add:+d})")

    if s.cpi_yoy is not None:
        add = _bounded((s.cpi_yoy - CPI_ANCHOR) * 400, 8)
        factors["inflation"] = add
        categories.add("inflation")
        notes.append(f"CPI YoY {s.cpi_yoy * 100:.1f}% (inflation {add:+d})")

    if s.metro_unemployment_yoy_pp is not None:
        add = _bounded(s.metro_unemployment_yoy_pp * 2, 10)
        factors["labor"] = add
        categories.add("labor")
        rate = f"U/E {s.metro_unemployment:.1f}%" if s.metro_unemployment is not None else "Metro U/E"
        period = f" ({s.metro_period})" if s.metro_period else ""
        notes.append(f"{rate}{period}, ΔYoY {s.metro_unemployment_yoy_pp:+.1f}pp (labor {add:+d})")
    elif s.national_unemployment is not None:
        add = _bounded((s.national_unemployment - NATIONAL_UE_ANCHOR) * 500, 10)
        factors["labor"] = add
        categories.add("labor")
        notes.append(f"National U/E {s.national_unemployment * 100:.1f}% (labor {add:+d})")

    if s.news:
        neg, pos = news_counts(s.news)
        add = _bounded((neg - pos) * 3, 8)
        factors["news"] = add
        categories.add("news")
        notes.append(f"News {add:+d} (neg:{neg} pos:{pos})")

    deviation = float(sum(factors.values()))
    if categories and len(categories) < MIN_CATEGORIES and deviation != 0:
        shrunk = deviation * LOW_CONFIDENCE_SHRINK
        factors["low_confidence"] = round(shrunk - deviation, 2)
        notes.append(f"low confidence ×{LOW_CONFIDENCE_SHRINK:g}")
        deviation = shrunk

    score = round(max(0.0, min(100.0, BASELINE + deviation)), 2)
    return RiskResult(
        score=score,
        factors=factors,
        note=" · ".join(notes) or "No macro/labor/news inputs provided.",
        categories=[c for c in CATEGORY_ORDER if c in categories],
    )


__all__ = ["blend_risk", "news_counts", "BASELINE", "LOW_CONFIDENCE_SHRINK"]
