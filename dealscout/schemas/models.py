# dealscout/schemas/models.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dealscout.storage.kv import is_key_part

# =========================
# Search & scoring
# =========================


class SearchHit(BaseModel):
    """Raw, untrusted row returned by an external search provider."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str = Field("", description="Result title as returned by the provider.")
    url: str = Field(..., description="Result link.")
    snippet: str = Field("", description="Result snippet/description text.")


UrlKind = Literal["detail", "profile", "category", "search", "home", "other"]


class CandidateSignals(BaseModel):
    """
    Typed signals parsed once from a hit's title/snippet/url.

    The scoring function consumes only these fields, never the raw strings.
    Money values are plain currency units; rates are fractions (0.065 = 6.5%).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    price: float | None = Field(None, ge=0, description="Asking price parsed from text.")
    cap_rate: float | None = Field(None, ge=0, description="Stated cap rate as a fraction.")
    noi: float | None = Field(None, ge=0, description="Net operating income parsed from text.")
    tenant: str | None = Field(None, description="Matched allow-listed tenant name (lowercase).")
    long_term: bool = Field(False, description="Long-term lease language detected.")
    guarantee: bool = Field(False, description="Corporate guarantee language detected.")
    net_lease: bool = Field(False, description="NNN / absolute net / bondable lease language detected.")
    industrial: bool = Field(False, description="Industrial/logistics asset language detected.")
    for_sale: bool = Field(False, description="Listing is for sale (url or text).")
    for_lease: bool = Field(False, description="Listing is for lease (url or text).")
    state: str | None = Field(None, description="Two-letter state hint (FL/TX/CA) when detected.")
    url_kind: UrlKind = Field("other", description="Shape classification of the url.")
    host: str | None = Field(None, description="Lowercased hostname of the url.")

    @property
    def implied_cap_rate(self) -> float | None:
        if self.noi and self.price and self.price > 0:
            return self.noi / self.price
        return None


class ScoreFactors(BaseModel):
    """Individually capped sub-scores. Their sum is the total score."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    relevance: int = Field(0, ge=0, le=30)
    tenant: int = Field(0, ge=0, le=20)
    lease: int = Field(0, ge=0, le=15)
    yield_: int = Field(0, ge=0, le=20, alias="yield")
    url_quality: int = Field(0, ge=0, le=15)

    def total(self) -> int:
        return self.relevance + self.tenant + self.lease + self.yield_ + self.url_quality

    def as_dict(self) -> dict[str, int]:
        return self.model_dump(by_alias=True)


class ScoredCandidate(BaseModel):
    """A SearchHit plus its derived score. Re-scoring produces a new value."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    url: str
    snippet: str = ""
    score: int = Field(..., ge=0, le=100, description="Quality score in [0, 100].")
    label: str = Field("", description="Short analyst label, e.g. 'Industrial · NNN · 6.5% Cap'.")
    factors: ScoreFactors
    signals: CandidateSignals
    rationale: str = Field("", description="One-paragraph analyst note explaining the score.")

    @property
    def hit(self) -> SearchHit:
        return SearchHit(title=self.title, url=self.url, snippet=self.snippet)


# =========================
# Extraction & underwriting
# =========================


class ExtractedListing(BaseModel):
    """Result of one extraction attempt. Unknown fields stay None."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str | None = None
    address: str | None = None
    asking_price: float | None = Field(None, ge=0)
    noi: float | None = Field(None, ge=0)
    cap_rate: float | None = Field(None, ge=0)
    blocked: bool = Field(False, description="Anti-bot / access-denied / empty-shell page detected.")
    auto_drilled: bool = Field(False, description="A list/home page was followed to a detail page.")
    final_url: str = Field(..., description="Resolved url after redirects and drilling.")
    screenshot_b64: str | None = Field(None, description="Diagnostic PNG screenshot (base64).")
    error: str | None = Field(None, description="Diagnostic code for a degraded attempt (timeout, load_failed, render_failed, parse_failed).")

    def has_fields(self) -> bool:
        return any(v is not None for v in (self.title, self.address, self.asking_price, self.noi, self.cap_rate))

    @property
    def usable(self) -> bool:
        """Non-blocked, non-failed and at least one field present."""
        return not self.blocked and self.error is None and self.has_fields()

    def summary(self) -> str:
        bits: list[str] = []
        if self.title:
            bits.append(self.title)
        if self.address:
            bits.append(self.address)
        if self.asking_price is not None:
            bits.append(f"price={self.asking_price:,.0f}")
        if self.noi is not None:
            bits.append(f"noi={self.noi:,.0f}")
        if self.cap_rate is not None:
            bits.append(f"cap={self.cap_rate:.2%}")
        if self.blocked:
            bits.append("BLOCKED")
        return " | ".join(bits) if bits else "ExtractedListing: (no key facts)"


class Underwrite(BaseModel):
    """Quick underwriting from NOI and price."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    cap_rate: float | None = Field(None, description="NOI / price.")
    dscr: float | None = Field(None, description="Debt service coverage: NOI / annual debt service.")
    loan_amount: float | None = Field(None, description="price × LTV.")
    debt_service: float | None = Field(None, description="Annual debt service on the loan.")


class Deal(BaseModel):
    """A scored candidate merged with its extraction and underwriting. Unit returned to the requester."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str | None
    url: str
    source: str | None = Field(None, description="Hostname of the final url.")
    address: str | None = None
    asking_price: float | None = None
    noi: float | None = None
    cap_rate: float | None = None
    score: int | None = Field(None, ge=0, le=100)
    label: str | None = None
    screenshot_b64: str | None = None
    auto_drilled: bool = False
    underwrite: Underwrite = Field(default_factory=Underwrite)


# =========================
# Runs & progress events
# =========================

RunState = Literal["pending", "running", "finished-ok", "finished-failed"]
TERMINAL_STATES: frozenset[str] = frozenset({"finished-ok", "finished-failed"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Run(BaseModel):
    """One interactive discovery request. Owned by the RunController."""

    model_config = ConfigDict(extra="ignore")

    run_id: str
    query: str
    state: RunState = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None
    message: str | None = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    run_id: str
    t: float = Field(..., description="Epoch seconds; non-decreasing within a run.")


class StatusEvent(_EventBase):
    kind: Literal["status"] = "status"
    label: str
    note: str | None = None


class NavigationEvent(_EventBase):
    kind: Literal["navigation"] = "navigation"
    url: str
    label: str = "Opening page..."


class ThinkingEvent(_EventBase):
    kind: Literal["thinking"] = "thinking"
    text: str


class SourceFoundEvent(_EventBase):
    kind: Literal["source_found"] = "source_found"
    source_id: int
    title: str
    url: str
    snippet: str = ""
    score: int | None = None


class PropertyProgressEvent(_EventBase):
    kind: Literal["property_progress"] = "property_progress"
    stage: Literal["extracting", "skipped", "deal"]
    url: str
    reason: str | None = None
    deal: Deal | None = None


class AnswerChunkEvent(_EventBase):
    kind: Literal["answer_chunk"] = "answer_chunk"
    text: str


class CompletionEvent(_EventBase):
    kind: Literal["completion"] = "completion"
    ok: bool
    message: str | None = None
    deal_count: int = 0


class HeartbeatEvent(_EventBase):
    kind: Literal["heartbeat"] = "heartbeat"


ProgressEvent = Annotated[
    StatusEvent
    | NavigationEvent
    | ThinkingEvent
    | SourceFoundEvent
    | PropertyProgressEvent
    | AnswerChunkEvent
    | CompletionEvent
    | HeartbeatEvent,
    Field(discriminator="kind"),
]

EVENT_TYPES: dict[str, type[_EventBase]] = {
    "status": StatusEvent,
    "navigation": NavigationEvent,
    "thinking": ThinkingEvent,
    "source_found": SourceFoundEvent,
    "property_progress": PropertyProgressEvent,
    "answer_chunk": AnswerChunkEvent,
    "completion": CompletionEvent,
    "heartbeat": HeartbeatEvent,
}


class PortfolioSummary(BaseModel):
    """Score-only synthesis over scored candidates (no page extraction)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    candidate_count: int = Field(0, ge=0)
    score_buckets: dict[str, int] = Field(default_factory=dict, description="Counts per score band ('80-100', ...).")
    geography: dict[str, int] = Field(default_factory=dict, description="Counts per state hint ('TX', 'other', ...).")
    average_score: float | None = None
    average_cap_rate: float | None = Field(None, description="Mean of stated cap rates, when any.")
    top: list[ScoredCandidate] = Field(default_factory=list)


class RunResult(BaseModel):
    """Final output of a run, available after its terminal event."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    run_id: str
    plan: str
    deals: list[Deal] = Field(default_factory=list)
    summary: PortfolioSummary | None = None
    state: RunState = "finished-ok"
    message: str | None = None


# =========================
# Market / risk
# =========================


class NewsItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    source: str | None = None
    url: str | None = None


class MacroSignals(BaseModel):
    """
    Independently optional macro inputs for the risk blend.

    Rates and inflation are fractions (0.043 = 4.3%); deltas are in basis points
    or percentage points as named.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    treasury_10y: float | None = Field(None, description="10-year benchmark yield (fraction).")
    treasury_10y_delta_bps: float | None = Field(None, description="Month-over-month change in bps.")
    curve_2s10s: float | None = Field(None, description="10Y minus 2Y spread (fraction, negative = inverted).")
    cpi_yoy: float | None = Field(None, description="CPI year-over-year change (fraction).")
    metro_unemployment: float | None = Field(None, description="Metro unemployment rate (percent).")
    metro_unemployment_yoy_pp: float | None = Field(None, description="Metro unemployment YoY change (pp).")
    metro_period: str | None = None
    national_unemployment: float | None = Field(None, description="National unemployment rate (fraction).")
    news: list[NewsItem] | None = None


class RiskResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    score: float = Field(..., ge=0, le=100)
    factors: dict[str, float] = Field(default_factory=dict)
    note: str = ""
    categories: list[str] = Field(default_factory=list)


# =========================
# Watchlists & snapshots
# =========================


class Watchlist(BaseModel):
    """A saved query monitored on a recurring schedule. Authored externally."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    label: str = ""
    query: str = Field(..., min_length=1)
    domains: list[str] = Field(default_factory=lambda: ["crexi.com", "loopnet.com", "brevitas.com"])
    min_score: float = Field(70, ge=0, le=100)
    risk_max: float = Field(70, ge=0, le=100)
    schedule: str = Field("hourly", description="Interval ('15m', '1h', 'hourly') or simple cron expression.")
    enabled: bool = True

    @field_validator("id")
    @classmethod
    def _safe_id(cls, v: str) -> str:
        if not is_key_part(v):
            raise ValueError("watchlist id may only contain letters, digits, '_', '.' and '-'")
        return v


class SnapshotItem(BaseModel):
    """One tracked listing inside a snapshot; its canonical url is the identity key."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str
    score: float
    risk: float
    title: str | None = None
    price: float | None = None
    cap_rate: float | None = None

    def tracked(self) -> tuple[float, float, float | None, float | None]:
        return (self.score, self.risk, self.price, self.cap_rate)


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    watch_id: str
    items: list[SnapshotItem] = Field(default_factory=list)
    ts: datetime = Field(default_factory=utcnow)


class DiffResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    new_items: list[SnapshotItem] = Field(default_factory=list)
    changed_items: list[SnapshotItem] = Field(default_factory=list)
    removed_urls: list[str] = Field(default_factory=list)

    @property
    def alert_count(self) -> int:
        return len(self.new_items) + len(self.changed_items)

    def summary(self) -> str:
        return f"{len(self.new_items)} new, {len(self.changed_items)} changed, {len(self.removed_urls)} removed"


class AlertNotification(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    watch_id: str
    watch_label: str
    new_count: int = Field(..., ge=0)
    changed_count: int = Field(..., ge=0)
    items: list[SnapshotItem] = Field(default_factory=list, description="Capped sample of new + changed items.")
    timestamp: datetime = Field(default_factory=utcnow)

    def text(self) -> str:
        return f"{self.watch_label or self.watch_id}: {self.new_count} new, {self.changed_count} changed"
