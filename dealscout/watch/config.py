# dealscout/watch/config.py
"""
Watchlist definitions are authored outside the system and read from a JSON file:

    [
      {"id": "tx-nnn", "label": "TX NNN", "query": "NNN dollar general Texas",
       "min_score": 70, "risk_max": 70, "schedule": "hourly"}
    ]

An object with a top-level "watchlists" list is accepted as well.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from dealscout.core.errors import WatchlistConfigMissing
from dealscout.schemas.models import Watchlist

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchlistRepository:
    """File-backed watchlist definitions; each call re-reads the file."""

    path: Path

    def _read(self) -> list[Any]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {self.path}: {e}") from e
        if isinstance(raw, dict):
            raw = raw.get("watchlists", [])
        if not isinstance(raw, list):
            raise ValueError(f"{self.path} must hold a list of watchlists")
        return raw

    def load_all(self) -> list[Watchlist]:
        out: list[Watchlist] = []
        seen: set[str] = set()
        for entry in self._read():
            try:
                wl = Watchlist.model_validate(entry)
            except ValidationError as e:
                logger.warning("Skipping invalid watchlist entry in %s: %s", self.path, e)
                continue
            if wl.id in seen:
                logger.warning("Duplicate watchlist id %r in %s; keeping the first", wl.id, self.path)
                continue
            seen.add(wl.id)
            out.append(wl)
        return out

    def get(self, watch_id: str) -> Watchlist:
        for wl in self.load_all():
            if wl.id == watch_id:
                return wl
        raise WatchlistConfigMissing(f"watchlist {watch_id!r} not found in {self.path}")

    def save(self, watchlists: list[Watchlist]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [wl.model_dump(mode="json") for wl in watchlists]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


__all__ = ["WatchlistRepository"]
