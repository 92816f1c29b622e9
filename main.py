# main.py
"""
Entry Point — DealScout

Purpose
-------
Three commands over the same wiring:
  run     one interactive discovery run (progress printed, result as text or JSON)
  watch   the watchlist monitor: timers → queue → worker → notifier
  serve   the HTTP API (FastAPI under uvicorn)

Usage
-----
    python main.py run "NNN dollar general Texas"
    python main.py run "industrial NNN Florida" --score-only --json
    python main.py run https://www.crexi.com/properties/123456/some-listing
    python main.py watch --watchlists watchlists.json
    python main.py watch --once tx-nnn
    python main.py serve --port 8000
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from dealscout.config.log import setup_logging
from dealscout.config.settings import Settings, SettingsLoader
from dealscout.runtime import build_controller, build_watch_service
from dealscout.schemas.models import AlertNotification, RunResult

logger = logging.getLogger("dealscout.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    p = argparse.ArgumentParser(description="DealScout: commercial listing discovery and monitoring")
    p.add_argument("--config", type=str, default=None, help="Path to settings JSON (optional).")
    p.add_argument("--log-level", type=str, default=None, help="Overrides settings log_level.")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run one discovery query (or a direct listing URL).")
    run.add_argument("query", type=str)
    run.add_argument("--score-only", action="store_true", help="Score candidates without opening pages.")
    run.add_argument("--json", action="store_true", help="Print the RunResult as JSON.")

    watch = sub.add_parser("watch", help="Run the watchlist monitor.")
    watch.add_argument("--watchlists", type=str, default=None, help="Watchlist JSON file (overrides settings).")
    watch.add_argument("--once", type=str, default=None, metavar="ID", help="Run a single cycle for one watchlist and exit.")

    serve = sub.add_parser("serve", help="Serve the HTTP API.")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return p.parse_args(argv)


def format_result(result: RunResult) -> str:
    lines = [result.plan, f"State: {result.state}" + (f" ({result.message})" if result.message else "")]
    for i, deal in enumerate(result.deals, start=1):
        price = f"${deal.asking_price:,.0f}" if deal.asking_price else "n/a"
        cap = f"{deal.cap_rate * 100:.2f}%" if deal.cap_rate else "n/a"
        lines.append(f"[{i}] {deal.title or 'Property'} | {price} | cap {cap} | {deal.url}")
    if result.summary is not None and result.summary.candidate_count:
        s = result.summary
        lines.append(f"{s.candidate_count} candidates, average score {s.average_score}")
        for cand in s.top:
            lines.append(f"  {cand.score:>3}  {cand.label}  {cand.url}")
    return "\n".join(lines)


async def cmd_run(settings: Settings, args: argparse.Namespace) -> int:
    controller = build_controller(settings)
    renderer = controller.extractor.renderer
    try:
        run_id = controller.start_run(args.query, score_only=True if args.score_only else None)
        unsubscribe = controller.channel.subscribe(
            run_id,
            lambda ev: logger.info("%s %s", ev.kind, ev.model_dump_json(exclude={"run_id", "t", "kind", "deal"})),
        )
        try:
            result = await controller.wait(run_id)
        finally:
            unsubscribe()
    finally:
        await controller.channel.aclose()
        await renderer.aclose()

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(format_result(result))
    return 0 if result.state == "finished-ok" else 1


def _print_alert(alert: AlertNotification) -> None:
    print(alert.text())
    for item in alert.items:
        print(f"  {item.score:>5.1f}  risk {item.risk:>5.1f}  {item.title or item.url}")


async def cmd_watch(settings: Settings, args: argparse.Namespace) -> int:
    service = build_watch_service(settings, watchlists_path=args.watchlists)
    service.notifier.subscribe(_print_alert)

    if args.once:
        diff = await service.worker.run_cycle(args.once)
        if diff is None:
            return 1
        print(json.dumps(diff.model_dump(mode="json"), indent=2))
        return 0

    await service.start()
    logger.info("Watching %d watchlist(s): %s", len(service.scheduler.active), ", ".join(service.scheduler.active))
    try:
        await asyncio.Event().wait()
    finally:
        await service.aclose()
    return 0


def cmd_serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    from dealscout.api.app import create_app

    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port, log_config=None)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = SettingsLoader().load(args.config)
    setup_logging(args.log_level or settings.log_level, settings.log_file)

    if args.command == "serve":
        return cmd_serve(settings, args)
    try:
        if args.command == "run":
            return asyncio.run(cmd_run(settings, args))
        return asyncio.run(cmd_watch(settings, args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
