# dealscout/core/normalize/money.py
"""
Money / percentage parsing shared by the candidate signal parser and the page
field extractor.

Conventions
-----------
- Money values are plain currency units (float).
- "million" / "mm" / "m" suffixes scale ×1,000,000; "k" scales ×1,000.
- Rates are returned as fractions (6.5% → 0.065).
"""

from __future__ import annotations

import re
from typing import Any

_NUM = r"[0-9]{1,3}(?:,[0-9]{3})+(?:\.[0-9]+)?|[0-9]+(?:\.[0-9]+)?"
_UNIT = r"(?P<unit>million|mil\b|mm\b|m\b|k\b)?"

# "$4,250,000", "$ 4.2 million", "$12.5M"
_DOLLAR_RE = re.compile(rf"\$\s?(?P<num>{_NUM})\s*{_UNIT}", re.IGNORECASE)
# bare comma-grouped amounts ("asking 4,250,000") used when no "$" is present
_GROUPED_RE = re.compile(
    r"(?<![\d.])(?P<num>[0-9]{1,3}(?:,[0-9]{3})+(?:\.[0-9]+)?)(?![\d,])(?!\s*(?:sf\b|sq|square|acres?\b|units?\b|ft\b))",
    re.IGNORECASE,
)
_NOI_RE = re.compile(
    rf"\b(?:NOI|net\s+operating\s+income)\b[^$0-9%\n]{{0,30}}\$?\s?(?P<num>{_NUM})\s*{_UNIT}",
    re.IGNORECASE,
)
_CAP_RE = re.compile(
    r"\bcap(?:italization)?\s*rate\b[^0-9%\n]{0,15}(?P<pct>[0-9]{1,2}(?:\.[0-9]+)?)\s*%",
    re.IGNORECASE,
)
_CAP_SUFFIX_RE = re.compile(r"(?P<pct>[0-9]{1,2}(?:\.[0-9]+)?)\s*%\s*cap\b", re.IGNORECASE)

_SCALE = {"million": 1_000_000.0, "mil": 1_000_000.0, "mm": 1_000_000.0, "m": 1_000_000.0, "k": 1_000.0}


def clean_num(text: str) -> float | None:
    """'$1,234.50' → 1234.5; None when nothing numeric remains."""
    t = text.replace("$", "").replace(",", "").replace(" ", "").strip()
    t = re.sub(r"[^0-9.]", "", t)
    if not t or t.count(".") > 1:
        return None
    try:
        return float(t)
    except ValueError:
        return None


def _scaled(num: str, unit: str | None) -> float | None:
    value = clean_num(num)
    if value is None:
        return None
    # "$4,250,000 M..." is already a full amount
    if unit and value < 1000:
        value *= _SCALE[unit.lower()]
    return value


def to_money(value: Any) -> float | None:
    """Coerce a JSON/meta value ("4200000", "$4.2M", 4200000) to a currency amount."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    s = str(value).strip()
    m = re.fullmatch(rf"\$?\s?(?P<num>{_NUM})\s*{_UNIT}\s*(?:usd)?", s, flags=re.IGNORECASE)
    if m:
        v = _scaled(m.group("num"), m.group("unit"))
    else:
        v = clean_num(s)
    return v if v and v > 0 else None


def parse_money(text: str, *, allow_bare: bool = True) -> float | None:
    """First currency amount in `text` ("$4.2 million" → 4200000.0)."""
    if not text:
        return None
    m = _DOLLAR_RE.search(text)
    if m:
        v = _scaled(m.group("num"), m.group("unit"))
        if v:
            return v
    if allow_bare:
        g = _GROUPED_RE.search(text)
        if g:
            return clean_num(g.group("num"))
    return None


def parse_noi(text: str) -> float | None:
    if not text:
        return None
    m = _NOI_RE.search(text)
    if not m:
        return None
    return _scaled(m.group("num"), m.group("unit"))


def strip_noi(text: str) -> str:
    """Blank out NOI phrases so a following price search skips the NOI figure."""
    return _NOI_RE.sub(" ", text) if text else text


def parse_cap_rate(text: str) -> float | None:
    """'Cap Rate: 6.5%' or '6.5% cap' → 0.065."""
    if not text:
        return None
    m = _CAP_RE.search(text) or _CAP_SUFFIX_RE.search(text)
    if not m:
        return None
    pct = float(m.group("pct"))
    if pct <= 0 or pct >= 100:
        return None
    return round(pct / 100.0, 6)


def to_rate(value: Any) -> float | None:
    """Coerce '6.5%', '6.5' or 0.065 to a fraction."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        v = float(value)
    else:
        v = clean_num(str(value))
        if v is None:
            return None
    if v <= 0:
        return None
    return round(v / 100.0, 6) if v >= 1 else v


__all__ = ["clean_num", "to_money", "parse_money", "parse_noi", "strip_noi", "parse_cap_rate", "to_rate"]
