# dealscout/storage/kv.py
"""
Minimal key-value persistence used for run results and watchlist snapshots.

Two backends:
  - InMemoryStore: process-local dict (tests, ephemeral runs)
  - FileStore:     one JSON document per key under a base directory

Keys are short identifiers (run ids, watchlist ids) optionally namespaced with
a single "/" (e.g. "snapshots/<watch_id>"). Values are JSON-serializable dicts.
"""

from __future__ import annotations

import json
import os
import re
import threading
from pathlib import Path
from typing import Any, Protocol


KEY_PART = re.compile(r"^[A-Za-z0-9_.\-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> dict[str, Any] | None: ...

    def put(self, key: str, value: dict[str, Any]) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> list[str]: ...


def is_key_part(part: str) -> bool:
    """True when `part` can be used as one segment of a store key."""
    return part not in ("", ".", "..") and KEY_PART.match(part) is not None


def _check_key(key: str) -> list[str]:
    parts = key.split("/")
    if not parts or len(parts) > 2 or not all(is_key_part(p) for p in parts):
        raise ValueError(f"invalid store key: {key!r}")
    return parts


class InMemoryStore:
    """Dict-backed store; values are deep-copied through JSON on write."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        _check_key(key)
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def put(self, key: str, value: dict[str, Any]) -> None:
        _check_key(key)
        encoded = json.dumps(value, default=str)
        with self._lock:
            self._data[key] = encoded

    def delete(self, key: str) -> bool:
        _check_key(key)
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class FileStore:
    """
    One `<base>/<ns>/<name>.json` file per key.

    Writes go through a temp file + os.replace so a crash never leaves a
    half-written record. `get` raises json.JSONDecodeError on a corrupted
    record; callers decide how to degrade.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def path_for(self, key: str) -> Path:
        parts = _check_key(key)
        return self.base_dir.joinpath(*parts[:-1], f"{parts[-1]}.json")

    def get(self, key: str) -> dict[str, Any] | None:
        p = self.path_for(key)
        if not p.exists():
            return None
        data = json.loads(p.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"record {key!r} is not a JSON object")
        return data

    def put(self, key: str, value: dict[str, Any]) -> None:
        p = self.path_for(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, indent=2, default=str), encoding="utf-8")
        os.replace(tmp, p)

    def delete(self, key: str) -> bool:
        p = self.path_for(key)
        try:
            p.unlink()
            return True
        except FileNotFoundError:
            return False

    def keys(self, prefix: str = "") -> list[str]:
        if not self.base_dir.exists():
            return []
        out: list[str] = []
        for p in self.base_dir.rglob("*.json"):
            rel = p.relative_to(self.base_dir).with_suffix("")
            key = "/".join(rel.parts)
            if key.startswith(prefix):
                out.append(key)
        return sorted(out)


__all__ = ["KeyValueStore", "InMemoryStore", "FileStore", "is_key_part"]
