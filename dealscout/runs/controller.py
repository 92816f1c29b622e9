# dealscout/runs/controller.py
"""
Run controller: drives one interactive discovery request end to end.

    pending → running → finished-ok | finished-failed

Discovery mode runs the search cascade, then tries up to `max_candidates`
extractions one at a time; every usable extraction becomes a Deal and the loop
moves on to the next candidate. Score-only mode stops after scoring and returns
a PortfolioSummary. A query that is itself an http(s) url skips the cascade.

Only the controller's own failures (or cancellation) finish a run as
`finished-failed`; stage errors are already degraded by the stages themselves.
The terminal `completion` event is always emitted, after the result is stored.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone

from dealscout.core.cancel import CancellationToken, check
from dealscout.core.errors import RunCancelled, RunNotFound
from dealscout.core.extract.engine import ExtractionEngine, outcome_error
from dealscout.core.finance.underwrite import quick_underwrite
from dealscout.core.search.cascade import CascadeRequest, CascadeStage, SearchCascade
from dealscout.core.search.urls import canonical_url, hostname
from dealscout.events.channel import EventChannel
from dealscout.schemas.models import Deal, ExtractedListing, ProgressEvent, Run, RunResult, ScoredCandidate
from dealscout.storage.kv import InMemoryStore, KeyValueStore, is_key_part

from .summary import build_portfolio_summary, summary_lines

logger = logging.getLogger(__name__)

_URL_QUERY = re.compile(r"^https?://", re.I)
MAX_SOURCES = 5


def make_deal(listing: ExtractedListing, candidate: ScoredCandidate | None = None) -> Deal:
    """Merge an extraction (and its candidate, if any) with quick underwriting."""
    uw = quick_underwrite(listing.noi, listing.asking_price)
    url = listing.final_url or (candidate.url if candidate else "")
    return Deal(
        title=listing.title or (candidate.title if candidate else None),
        url=url,
        source=hostname(url) or None,
        address=listing.address,
        asking_price=listing.asking_price,
        noi=listing.noi,
        cap_rate=listing.cap_rate if listing.cap_rate is not None else uw.cap_rate,
        score=candidate.score if candidate else None,
        label=candidate.label if candidate else None,
        screenshot_b64=listing.screenshot_b64,
        auto_drilled=listing.auto_drilled,
        underwrite=uw,
    )


def deal_lines(deal: Deal, citation: int | None) -> list[str]:
    cite = f" [{citation}]" if citation else ""
    lines = [
        f"Found a promising listing{cite}: ",
        f"**{deal.title or 'Property'}** located at {deal.address or 'address unavailable'}. ",
    ]
    if deal.asking_price:
        lines.append(f"The asking price is ${deal.asking_price:,.0f}. ")
    if deal.noi:
        lines.append(f"Net Operating Income (NOI) is ${deal.noi:,.0f}. ")
    if deal.cap_rate:
        lines.append(f"The cap rate is {deal.cap_rate * 100:.2f}%. ")
    if deal.underwrite.dscr:
        lines.append(f"DSCR is {deal.underwrite.dscr:.2f}. ")
    return lines


class RunController:
    def __init__(
        self,
        cascade: SearchCascade,
        extractor: ExtractionEngine,
        channel: EventChannel,
        *,
        results: KeyValueStore | None = None,
        marketplace: str = "crexi.com",
        max_candidates: int = 8,
        max_results: int = 10,
        search_timeout_s: float = 15.0,
        min_score: float = 50,
        min_qualified: int = 2,
        score_only: bool = False,
        cancel_on_disconnect: bool = False,
        id_factory: Callable[[], str] = lambda: secrets.token_hex(8),
    ) -> None:
        self.cascade = cascade
        self.extractor = extractor
        self.channel = channel
        self.results = results if results is not None else InMemoryStore()
        self.marketplace = marketplace
        self.max_candidates = max_candidates
        self.max_results = max_results
        self.search_timeout_s = search_timeout_s
        self.min_score = min_score
        self.min_qualified = min_qualified
        self.score_only = score_only
        self.cancel_on_disconnect = cancel_on_disconnect
        self._id_factory = id_factory
        self._runs: dict[str, Run] = {}
        self._tasks: dict[str, asyncio.Task[RunResult]] = {}
        self._tokens: dict[str, CancellationToken] = {}

    # ---------- public API ----------

    def start_run(self, query: str, *, score_only: bool | None = None) -> str:
        """Register a run and schedule it on the running loop; returns immediately."""
        run = self._new_run(query)
        token = CancellationToken()
        self._tokens[run.run_id] = token
        mode = self.score_only if score_only is None else score_only
        task = asyncio.get_running_loop().create_task(self._execute(run, token, mode), name=f"run:{run.run_id}")
        self._tasks[run.run_id] = task
        task.add_done_callback(lambda _t, rid=run.run_id: self._tasks.pop(rid, None))
        logger.info("Run %s started: %r", run.run_id, query)
        return run.run_id

    async def run_sync(self, query: str, *, score_only: bool | None = None) -> RunResult:
        """Execute inline and return the result; events are still published to any listener."""
        run = self._new_run(query)
        token = CancellationToken()
        self._tokens[run.run_id] = token
        mode = self.score_only if score_only is None else score_only
        return await self._execute(run, token, mode)

    def get_run(self, run_id: str) -> Run:
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFound(run_id) from None

    def get_result(self, run_id: str) -> RunResult | None:
        """Stored result, or None while the run is not terminal (or unknown)."""
        run = self._runs.get(run_id)
        if run is not None and not run.terminal:
            return None
        if not is_key_part(run_id):
            return None
        data = self.results.get(self._result_key(run_id))
        return RunResult.model_validate(data) if data is not None else None

    async def wait(self, run_id: str) -> RunResult:
        task = self._tasks.get(run_id)
        if task is not None:
            return await task
        result = self.get_result(run_id)
        if result is None:
            raise RunNotFound(run_id)
        return result

    def cancel(self, run_id: str, reason: str = "cancelled by client") -> bool:
        token = self._tokens.get(run_id)
        run = self._runs.get(run_id)
        if token is None or run is None or run.terminal:
            return False
        token.cancel(reason)
        logger.info("Run %s cancellation requested: %s", run_id, reason)
        return True

    async def stream_events(self, run_id: str) -> AsyncIterator[ProgressEvent]:
        """Live events for a run until its completion event; nothing for a finished run."""
        run = self.get_run(run_id)
        if run.terminal:
            return
        finished = False
        try:
            async for event in self.channel.stream(run_id, until_terminal=True):
                yield event
                if event.kind == "completion":
                    finished = True
        finally:
            if not finished and self.cancel_on_disconnect:
                self.cancel(run_id, "client disconnected")

    # ---------- internals ----------

    @staticmethod
    def _result_key(run_id: str) -> str:
        return f"results/{run_id}"

    def _new_run(self, query: str) -> Run:
        run = Run(run_id=self._id_factory(), query=query.strip())
        self._runs[run.run_id] = run
        return run

    def _emit(self, run: Run, kind: str, **fields: object) -> None:
        self.channel.emit(run.run_id, kind, **fields)

    async def _execute(self, run: Run, token: CancellationToken, score_only: bool) -> RunResult:
        run.state = "running"
        deals: list[Deal] = []
        plan = ""
        result: RunResult | None = None
        try:
            self._emit(run, "status", label="Run started", note=run.query)
            if _URL_QUERY.match(run.query):
                plan = f"Direct extraction from: {run.query}"
                await self._direct(run, token, deals)
                result = RunResult(run_id=run.run_id, plan=plan, deals=deals)
            else:
                plan = f"Searching {self.marketplace} for: {run.query}"
                result = await self._discover(run, token, deals, plan, score_only)
            run.state = "finished-ok"
        except RunCancelled as e:
            run.state = "finished-failed"
            run.message = f"cancelled: {e}"
            logger.info("Run %s cancelled", run.run_id)
        except Exception as e:  # noqa: BLE001
            run.state = "finished-failed"
            run.message = f"internal error: {type(e).__name__}: {e}"
            logger.exception("Run %s failed", run.run_id)

        run.finished_at = datetime.now(timezone.utc)
        if result is None:
            result = RunResult(run_id=run.run_id, plan=plan, deals=deals)
        result = result.model_copy(update={"state": run.state, "message": run.message})
        try:
            self.results.put(self._result_key(run.run_id), result.model_dump(mode="json"))
        except Exception:  # noqa: BLE001
            logger.exception("Could not store result for run %s", run.run_id)
        self._emit(
            run,
            "completion",
            ok=run.state == "finished-ok",
            message=run.message,
            deal_count=len(result.deals),
        )
        self._tokens.pop(run.run_id, None)
        self.channel.forget(run.run_id)
        return result

    async def _direct(self, run: Run, token: CancellationToken, deals: list[Deal]) -> None:
        url = run.query
        self._emit(run, "status", label="Opening detail page")
        self._emit(run, "navigation", url=url, label="Navigating")
        listing = await self.extractor.extract(url)
        check(token)
        reason = outcome_error(listing)
        if reason is not None:
            self._emit(run, "property_progress", stage="skipped", url=url, reason=type(reason).__name__)
            self._emit(run, "status", label="Blocked or no data on page")
            self._emit(run, "answer_chunk", text="That page was blocked or had no listing data. ")
            return
        deal = make_deal(listing)
        deals.append(deal)
        self._emit(run, "property_progress", stage="deal", url=deal.url, deal=deal)
        for line in deal_lines(deal, None):
            self._emit(run, "answer_chunk", text=line)

    async def _discover(
        self,
        run: Run,
        token: CancellationToken,
        deals: list[Deal],
        plan: str,
        score_only: bool,
    ) -> RunResult:
        self._emit(run, "thinking", text="Understanding your query...")
        sources: dict[str, int] = {}

        def on_stage_start(index: int, query: str) -> None:
            text = {
                1: f"Searching {self.marketplace} commercial real estate listings...",
                2: "Expanding search criteria...",
            }.get(index, "Trying broader search...")
            self._emit(run, "thinking", text=text)

        def on_stage_done(stage: CascadeStage, added: list[ScoredCandidate]) -> None:
            for cand in added:
                if len(sources) >= MAX_SOURCES:
                    break
                sources[canonical_url(cand.url)] = len(sources) + 1
                self._emit(
                    run,
                    "source_found",
                    source_id=len(sources),
                    title=cand.title,
                    url=cand.url,
                    snippet=cand.snippet,
                    score=cand.score,
                )

        req = CascadeRequest(
            query=run.query,
            marketplace=self.marketplace,
            max_results=self.max_results,
            timeout_s=self.search_timeout_s,
            min_score=self.min_score,
            min_qualified=self.min_qualified,
        )
        cascade = await self.cascade.run(req, cancel=token, on_stage_start=on_stage_start, on_stage_done=on_stage_done)
        candidates = cascade.candidates
        logger.info("Run %s: %d candidates after %d search stages", run.run_id, len(candidates), len(cascade.stages))

        if not candidates:
            self._emit(run, "answer_chunk", text="I couldn't find any matching commercial real estate listings. ")
            self._emit(
                run,
                "answer_chunk",
                text="Try a broader search query or paste a direct property URL from Crexi or LoopNet.",
            )
            return RunResult(run_id=run.run_id, plan=plan, deals=[])

        summary = build_portfolio_summary(candidates)
        if score_only:
            self._emit(run, "thinking", text="Summarizing scored candidates...")
            for line in summary_lines(summary):
                self._emit(run, "answer_chunk", text=line)
            return RunResult(run_id=run.run_id, plan=plan, deals=[], summary=summary)

        self._emit(run, "thinking", text="Analyzing property listings...")
        for cand in candidates[: self.max_candidates]:
            check(token)
            self._emit(run, "navigation", url=cand.url, label="Opening page...")
            self._emit(run, "property_progress", stage="extracting", url=cand.url)
            listing = await self.extractor.extract(cand.url)
            check(token)

            reason = outcome_error(listing)
            if reason is not None:
                logger.info("Skipping %s: %s", cand.url, type(reason).__name__)
                self._emit(run, "property_progress", stage="skipped", url=cand.url, reason=type(reason).__name__)
                continue

            deal = make_deal(listing, cand)
            deals.append(deal)
            self._emit(run, "property_progress", stage="deal", url=deal.url, deal=deal)
            citation = sources.get(canonical_url(deal.url)) or sources.get(canonical_url(cand.url))
            for line in deal_lines(deal, citation):
                self._emit(run, "answer_chunk", text=line)

        if not deals:
            self._emit(run, "answer_chunk", text="Listings were found but none could be opened; ranked by score instead. ")
            for line in summary_lines(summary):
                self._emit(run, "answer_chunk", text=line)

        return RunResult(run_id=run.run_id, plan=plan, deals=list(deals), summary=summary)


__all__ = ["RunController", "make_deal", "deal_lines"]
