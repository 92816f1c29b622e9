# dealscout/api/app.py
"""
HTTP surface for interactive runs.

    POST /run              {"query": ..., "score_only": bool?} → {"run_id": ...}
    GET  /events/{run_id}  text/event-stream, one `data: <json>` frame per ProgressEvent
    GET  /result/{run_id}  RunResult; 404 until the run is terminal
    POST /run_sync         RunResult, computed inline
    GET  /healthz
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from dealscout import __version__
from dealscout.config.settings import Settings, SettingsLoader
from dealscout.core.errors import RunNotFound
from dealscout.runs.controller import RunController
from dealscout.runtime import build_controller
from dealscout.schemas.models import RunResult

logger = logging.getLogger(__name__)


class RunRequest(BaseModel):
    query: str = Field(..., min_length=1)
    score_only: bool | None = None


class RunStarted(BaseModel):
    run_id: str


def sse_frame(payload: str) -> str:
    return f"data: {payload}\n\n"


def create_app(controller: RunController | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI app; a controller is created from settings when not injected."""
    if controller is None:
        controller = build_controller(settings or SettingsLoader().load())
    ctl = controller

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await ctl.channel.aclose()
        renderer = getattr(ctl.extractor, "renderer", None)
        if renderer is not None:
            await renderer.aclose()

    app = FastAPI(title="DealScout", version=__version__, lifespan=lifespan)
    app.state.controller = ctl

    @app.get("/healthz")
    async def healthz() -> dict[str, object]:
        return {"ok": True, "version": __version__}

    @app.post("/run", response_model=RunStarted)
    async def start_run(req: RunRequest) -> RunStarted:
        run_id = ctl.start_run(req.query, score_only=req.score_only)
        return RunStarted(run_id=run_id)

    @app.get("/events/{run_id}")
    async def events(run_id: str) -> StreamingResponse:
        try:
            ctl.get_run(run_id)
        except RunNotFound:
            raise HTTPException(status_code=404, detail=f"unknown run {run_id}") from None

        async def generate() -> AsyncIterator[str]:
            async for event in ctl.stream_events(run_id):
                yield sse_frame(event.model_dump_json())

        return StreamingResponse(
            generate(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/result/{run_id}", response_model=RunResult)
    async def result(run_id: str) -> RunResult:
        res = ctl.get_result(run_id)
        if res is None:
            raise HTTPException(status_code=404, detail=f"no result for run {run_id} yet")
        return res

    @app.post("/run_sync", response_model=RunResult)
    async def run_sync(req: RunRequest) -> RunResult:
        return await ctl.run_sync(req.query, score_only=req.score_only)

    return app


__all__ = ["create_app", "RunRequest", "sse_frame"]
