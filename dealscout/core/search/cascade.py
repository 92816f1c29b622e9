# dealscout/core/search/cascade.py
"""
Three-stage search cascade: narrow → broader → broadest.

Each stage's hits are merged with everything seen so far (deduplicated by
canonical url), filtered to detail-page shapes and the optional domain
allow-list, then scored. The next stage only runs while fewer than
`min_qualified` candidates reach `min_score`.

A failing or slow stage contributes zero hits; it never aborts the cascade.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from dealscout.core.cancel import CancellationToken, check
from dealscout.core.errors import SEARCH_ERRORS, SearchTimeout, with_deadline
from dealscout.core.scoring.engine import score_candidate
from dealscout.schemas.models import ScoredCandidate

from .provider import SearchProvider
from .urls import canonical_url, host_matches, is_detail_url, site_filter, source_rank

logger = logging.getLogger(__name__)


class CascadeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str = Field(..., min_length=1)
    marketplace: str = Field("crexi.com", description="Preferred marketplace domain for the narrow stages.")
    domains: list[str] = Field(default_factory=list, description="Optional allow-list; adds (site:a OR site:b).")
    max_results: int = Field(10, ge=1, le=100, description="Hits requested per stage.")
    timeout_s: float = Field(15.0, gt=0, description="Independent deadline per stage.")
    min_score: float = Field(50, ge=0, le=100)
    min_qualified: int = Field(2, ge=1)


class CascadeStage(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    query: str
    hits: int = 0
    added: int = 0
    error: str | None = None


class CascadeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidates: list[ScoredCandidate] = Field(default_factory=list)
    stages: list[CascadeStage] = Field(default_factory=list)

    def qualified(self, min_score: float) -> list[ScoredCandidate]:
        return [c for c in self.candidates if c.score >= min_score]

    @property
    def raw_hits(self) -> int:
        """Hits returned by the provider across all stages, before any filtering."""
        return sum(s.hits for s in self.stages)


StageStartHook = Callable[[int, str], None]
StageDoneHook = Callable[[CascadeStage, list[ScoredCandidate]], None]


def _marketplace_name(domain: str) -> str:
    return domain.split(".")[0] if domain else ""


def stage_queries(req: CascadeRequest) -> list[str]:
    q = req.query.strip()
    name = _marketplace_name(req.marketplace)
    stages = [
        f"{q} {req.marketplace} commercial real estate for sale",
        f"{q} {name} properties tenants commercial",
        f"{q} commercial real estate for sale",
    ]
    sites = site_filter(req.domains)
    if sites:
        stages = [f"{s} {sites}" for s in stages]
    return stages


def order_candidates(items: list[tuple[int, ScoredCandidate]]) -> list[ScoredCandidate]:
    """Source priority, then score descending, then arrival order."""
    return [c for _, c in sorted(items, key=lambda p: (source_rank(p[1].url), -p[1].score, p[0]))]


class SearchCascade:
    def __init__(self, provider: SearchProvider) -> None:
        self.provider = provider

    def _accept(self, url: str, domains: list[str]) -> bool:
        if not is_detail_url(url):
            return False
        if domains and not any(host_matches(url, d) for d in domains):
            return False
        return True

    async def run(
        self,
        req: CascadeRequest,
        *,
        cancel: CancellationToken | None = None,
        on_stage_start: StageStartHook | None = None,
        on_stage_done: StageDoneHook | None = None,
    ) -> CascadeResult:
        seen: set[str] = set()
        merged: list[tuple[int, ScoredCandidate]] = []
        stages: list[CascadeStage] = []
        arrival = 0

        for index, query in enumerate(stage_queries(req), start=1):
            check(cancel)
            if on_stage_start:
                on_stage_start(index, query)

            error: str | None = None
            try:
                hits = await with_deadline(
                    self.provider.search(query, num=req.max_results), req.timeout_s, SearchTimeout
                )
            except SEARCH_ERRORS as e:
                logger.warning("Search stage %d failed (%s): %s", index, type(e).__name__, e)
                hits, error = [], type(e).__name__

            added: list[ScoredCandidate] = []
            for hit in hits:
                key = canonical_url(hit.url)
                if key in seen:
                    continue
                seen.add(key)
                if not self._accept(hit.url, req.domains):
                    continue
                cand = score_candidate(hit, req.query)
                merged.append((arrival, cand))
                added.append(cand)
                arrival += 1

            stage = CascadeStage(index=index, query=query, hits=len(hits), added=len(added), error=error)
            stages.append(stage)
            logger.info("Search stage %d: %d hits, %d new detail candidates", index, len(hits), len(added))
            if on_stage_done:
                on_stage_done(stage, order_candidates([(i, c) for i, c in enumerate(added)]))

            qualified = sum(1 for _, c in merged if c.score >= req.min_score)
            if qualified >= req.min_qualified:
                break

        return CascadeResult(candidates=order_candidates(merged), stages=stages)


__all__ = [
    "CascadeRequest",
    "CascadeResult",
    "CascadeStage",
    "SearchCascade",
    "order_candidates",
    "stage_queries",
]
