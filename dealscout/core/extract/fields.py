# dealscout/core/extract/fields.py
"""
Deterministic listing field extraction (rendered HTML → ListingFields).

Each field is resolved in descending trust order and stops at the first hit:

    1. explicit selectors   (h1, address, [itemprop=price], [data-testid*=...])
    2. meta tags            (og:title, itemprop=price, product:price:amount, streetAddress)
    3. JSON-LD              (name, offers.price, address.*, additionalProperty NOI/cap)
    4. regex over visible body text

Also hosts the page-shape helpers the engine needs: bare-shell detection and
detail-link discovery for auto-drill. Offline and side-effect free.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator, Mapping
from typing import Literal
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, Field
from soupsieve import SelectorSyntaxError

from dealscout.core.normalize.money import parse_cap_rate, parse_money, parse_noi, strip_noi, to_money, to_rate
from dealscout.core.search.urls import is_detail_url

FieldName = Literal["title", "address", "asking_price", "noi", "cap_rate"]
Layer = Literal["selector", "meta", "jsonld", "regex"]

MIN_BODY_TEXT = 400

_ADDRESS_SELECTORS = (
    "address",
    "[itemprop='address']",
    "[data-testid*='address']",
    "[class*='address']",
    ".Address, .property-address, .listing-address",
)
_PRICE_SELECTORS = ("[itemprop='price']", "[data-testid*='price']", "[class*='asking-price']", "[class*='price']")
_NOI_SELECTORS = ("[data-testid*='noi']", "[class*='noi']")
_CAP_SELECTORS = ("[data-testid*='cap-rate']", "[data-testid*='caprate']", "[class*='cap-rate']", "[class*='caprate']")
_TITLE_SELECTORS = ("h1",)

_CARD_ANCHORS = ("[data-testid*='card'] a[href]", "[class*='card'] a[href]")

_ADDRESS_FULL_RE = re.compile(r"(?<![\d,.$])\b\d{2,6}\s+[^\n,]{3,60},\s*[A-Za-z .]{2,40},\s*[A-Z]{2}\s*\d{5}\b")
_ADDRESS_LOOSE_RE = re.compile(r"(?<![\d,.$])\b\d{2,6}\s+[A-Za-z0-9 .'-]{3,60}\b(?:St|Street|Ave|Avenue|Rd|Road|Blvd|Boulevard|Dr|Drive|Hwy|Highway|Pkwy|Parkway|Ln|Lane|Way|Ct|Court)\b\.?(?:,\s*[A-Za-z .]{2,40})?")
_ASKING_RE = re.compile(r"\b(?:asking\s+price|list\s+price|sale\s+price|price)\b[^$\n]{0,20}(\$\s?[0-9][0-9,.]*\s*(?:million|mil|mm|m|k)?\b)", re.I)
_NOI_NAME_RE = re.compile(r"\b(noi|net\s+operating\s+income)\b", re.I)
_CAP_NAME_RE = re.compile(r"\bcap(?:italization)?\s*rate\b", re.I)
_NON_LISTING_TYPES = ("Organization", "Person", "Offer", "PropertyValue", "WebSite", "BreadcrumbList", "ListItem")

ListingValue = str | float | None


class ListingFields(BaseModel):
    """Fields found on one page plus the layer each one came from."""

    title: str | None = None
    address: str | None = None
    asking_price: float | None = None
    noi: float | None = None
    cap_rate: float | None = None
    sources: dict[str, str] = Field(default_factory=dict)

    def all_null(self) -> bool:
        return all(getattr(self, f) is None for f in ("title", "address", "asking_price", "noi", "cap_rate"))

    def listing_null(self) -> bool:
        """No listing-specific facts (a bare page title does not count)."""
        return all(getattr(self, f) is None for f in ("address", "asking_price", "noi", "cap_rate"))


# -----------------------
# DOM helpers
# -----------------------


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def visible_text(soup: BeautifulSoup, sep: str = "\n") -> str:
    clone = BeautifulSoup(str(soup), "lxml")
    for tag in clone(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = clone.body or clone
    return body.get_text(sep, strip=True)


def page_title(soup: BeautifulSoup) -> str | None:
    if soup.title and soup.title.string:
        t = soup.title.string.strip()
        return t or None
    return None


def _first_text(soup: BeautifulSoup, selectors: tuple[str, ...] | list[str]) -> str | None:
    for sel in selectors:
        try:
            node = soup.select_one(sel)
        except (ValueError, SelectorSyntaxError):
            continue
        if isinstance(node, Tag):
            if node.name == "meta":
                txt = (node.get("content") or "").strip()
            else:
                txt = node.get_text(" ", strip=True)
            if txt:
                return txt
    return None


def _meta_content(soup: BeautifulSoup, selectors: tuple[str, ...]) -> str | None:
    for sel in selectors:
        try:
            node = soup.select_one(sel)
        except (ValueError, SelectorSyntaxError):
            continue
        if isinstance(node, Tag):
            val = (node.get("content") or "").strip()
            if val:
                return val
    return None


def _walk(obj: object) -> Iterator[object]:
    yield obj
    if isinstance(obj, dict):
        for v in obj.values():
            yield from _walk(v)
    elif isinstance(obj, list):
        for v in obj:
            yield from _walk(v)


def jsonld_blocks(soup: BeautifulSoup) -> list[object]:
    out: list[object] = []
    for node in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = node.string or node.get_text() or ""
        try:
            out.append(json.loads(raw))
        except (json.JSONDecodeError, ValueError):
            continue
    return out


def _jsonld_address(addr: object) -> str | None:
    if isinstance(addr, str):
        return addr.strip() or None
    if isinstance(addr, dict):
        parts = [addr.get(k) for k in ("streetAddress", "addressLocality", "addressRegion", "postalCode")]
        line = ", ".join(str(p).strip() for p in parts if p)
        return line or None
    return None


def _from_jsonld(blocks: list[object]) -> dict[str, ListingValue]:
    found: dict[str, ListingValue] = {}
    for block in blocks:
        for node in _walk(block):
            if not isinstance(node, dict):
                continue
            name = node.get("name")
            if "title" not in found and isinstance(name, str) and name.strip() and node.get("@type") not in _NON_LISTING_TYPES:
                found["title"] = name.strip()
            if "asking_price" not in found:
                offers = node.get("offers")
                raw = None
                if isinstance(offers, dict):
                    raw = offers.get("price")
                elif isinstance(offers, list) and offers and isinstance(offers[0], dict):
                    raw = offers[0].get("price")
                if raw is None and node.get("@type") != "PropertyValue":
                    raw = node.get("price")
                price = to_money(raw)
                if price is not None:
                    found["asking_price"] = price
            if "address" not in found and node.get("address") is not None:
                addr = _jsonld_address(node.get("address"))
                if addr:
                    found["address"] = addr
            if node.get("@type") == "PropertyValue" and isinstance(node.get("name"), str):
                name = node["name"]
                if "noi" not in found and _NOI_NAME_RE.search(name):
                    val = to_money(node.get("value"))
                    if val is not None:
                        found["noi"] = val
                if "cap_rate" not in found and _CAP_NAME_RE.search(name):
                    val = to_rate(node.get("value"))
                    if val is not None:
                        found["cap_rate"] = val
    return {k: v for k, v in found.items() if v is not None}


def _money_text(txt: str | None) -> float | None:
    if not txt:
        return None
    return parse_money(txt) or to_money(txt)


def _rate_text(txt: str | None) -> float | None:
    if not txt:
        return None
    return parse_cap_rate(txt) or to_rate(txt)


def _regex_address(text: str) -> str | None:
    m = _ADDRESS_FULL_RE.search(text) or _ADDRESS_LOOSE_RE.search(text)
    return m.group(0).strip() if m else None


def _regex_price(text: str) -> float | None:
    m = _ASKING_RE.search(text)
    if m:
        v = parse_money(m.group(1), allow_bare=False)
        if v is not None:
            return v
    return parse_money(strip_noi(text), allow_bare=False)


# -----------------------
# Public API
# -----------------------


def extract_fields(html: str, *, selectors: Mapping[str, str] | None = None) -> ListingFields:
    """
    Resolve title/address/asking_price/noi/cap_rate from rendered HTML.

    `selectors` may override the selector layer per field name.
    """
    soup = make_soup(html)
    custom = dict(selectors or {})
    text = visible_text(soup)
    blocks = jsonld_blocks(soup)
    ld = _from_jsonld(blocks)

    values: dict[str, ListingValue] = {}
    sources: dict[str, str] = {}

    def settle(name: FieldName, layer: Layer, value: ListingValue) -> None:
        if name not in values and value is not None and value != "":
            values[name] = value
            sources[name] = layer

    def sel(name: str, defaults: tuple[str, ...]) -> tuple[str, ...]:
        return ((custom[name],) if custom.get(name) else ()) + defaults

    # 1) explicit selectors
    settle("title", "selector", _first_text(soup, sel("title", _TITLE_SELECTORS)))
    settle("address", "selector", _first_text(soup, sel("address", _ADDRESS_SELECTORS)))
    settle("asking_price", "selector", _money_text(_first_text(soup, sel("asking_price", _PRICE_SELECTORS))))
    settle("noi", "selector", _money_text(_first_text(soup, sel("noi", _NOI_SELECTORS))))
    settle("cap_rate", "selector", _rate_text(_first_text(soup, sel("cap_rate", _CAP_SELECTORS))))

    # 2) meta tags
    settle("title", "meta", _meta_content(soup, ("meta[property='og:title']", "meta[name='twitter:title']")))
    settle(
        "asking_price",
        "meta",
        to_money(_meta_content(soup, ("meta[itemprop='price']", "meta[property='product:price:amount']", "meta[property='og:price:amount']"))),
    )
    settle("address", "meta", _meta_content(soup, ("meta[itemprop='streetAddress']", "meta[property='og:street-address']")))

    # 3) JSON-LD
    for name in ("title", "address", "asking_price", "noi", "cap_rate"):
        settle(name, "jsonld", ld.get(name))  # type: ignore[arg-type]

    # 4) regex over visible text
    settle("title", "regex", page_title(soup))
    settle("address", "regex", _regex_address(text))
    settle("asking_price", "regex", _regex_price(text))
    settle("noi", "regex", parse_noi(text))
    settle("cap_rate", "regex", parse_cap_rate(text))

    return ListingFields(**values, sources=sources)


def has_key_elements(soup: BeautifulSoup) -> bool:
    """Heading, price or address element present."""
    for sel in ("h1", "[itemprop='price']", "address", "[itemprop='address']"):
        if soup.select_one(sel) is not None:
            return True
    return False


def is_bare_shell(html: str, *, min_text: int = MIN_BODY_TEXT) -> bool:
    """No heading/price/address element AND too little visible text to be a listing."""
    soup = make_soup(html)
    if has_key_elements(soup):
        return False
    return len(visible_text(soup, " ")) < min_text


def find_detail_link(html: str, base_url: str) -> str | None:
    """First detail-shaped link, preferring anchors inside listing cards."""
    soup = make_soup(html)
    pools: list[list[Tag]] = []
    for sel in _CARD_ANCHORS:
        try:
            pools.append([a for a in soup.select(sel) if isinstance(a, Tag)])
        except ValueError:
            continue
    pools.append([a for a in soup.find_all("a", href=True) if isinstance(a, Tag)])
    for pool in pools:
        for a in pool:
            href = str(a.get("href") or "").strip()
            if not href or href.startswith(("#", "javascript:", "mailto:")):
                continue
            absolute = urljoin(base_url, href)
            if is_detail_url(absolute):
                return absolute
    return None


__all__ = [
    "ListingFields",
    "MIN_BODY_TEXT",
    "extract_fields",
    "find_detail_link",
    "has_key_elements",
    "is_bare_shell",
    "jsonld_blocks",
    "make_soup",
    "page_title",
    "visible_text",
]
