# dealscout/config/settings.py
"""
Settings loader for DealScout.

Goals
-----
- File-first configuration validated with Pydantic; every field has a default,
  so running with no file at all is valid.
- Secrets and deployment knobs come from the environment.

JSON shape (all sections optional)
----------------------------------
    {
      "data_dir": "data",
      "log_level": "INFO",
      "search":     {"marketplace": "crexi.com", "max_results": 10, "timeout_s": 15},
      "extraction": {"headless": true, "attempt_timeout_s": 90},
      "runs":       {"max_candidates": 8, "score_only": false, "heartbeat_s": 15},
      "watch":      {"watchlists_path": "watchlists.json", "run_immediately": false},
      "macro":      {"timeout_s": 10},
      "notify":     {"webhook_url": null}
    }

Environment overrides
---------------------
- SERPER_API_KEY                -> search.serper_api_key
- FRED_API_KEY / BLS_API_KEY    -> macro.fred_api_key / macro.bls_api_key
- DEALSCOUT_WEBHOOK_URL         -> notify.webhook_url
- DEALSCOUT_DATA_DIR            -> data_dir
- DEALSCOUT_SCORE_ONLY          -> runs.score_only (1/true/yes/on)
- DEALSCOUT_MAX_CANDIDATES      -> runs.max_candidates (int)
- DEALSCOUT_HEARTBEAT_S         -> runs.heartbeat_s (float)
- DEALSCOUT_LOG_LEVEL           -> log_level
- BROWSER_HEADED                -> extraction.headless = False
- BRIGHTDATA_HOST / _USERNAME / _PASSWORD -> extraction.proxy_*

Public API
----------
- class SettingsLoader: load(path), load_json(text)
- function load_settings(path) -> Settings
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


class SearchSettings(BaseModel):
    serper_api_key: str | None = Field(None, description="Serper.dev API key; without it search yields zero hits.")
    endpoint: str = "https://google.serper.dev/search"
    marketplace: str = "crexi.com"
    max_results: int = Field(10, ge=1, le=100)
    timeout_s: float = Field(15.0, gt=0)
    min_score: float = Field(50, ge=0, le=100)
    min_qualified: int = Field(2, ge=1)


class ExtractionSettings(BaseModel):
    headless: bool = True
    user_agent: str | None = None
    load_timeout_s: float = Field(20.0, gt=0)
    relaxed_timeout_s: float = Field(12.0, gt=0)
    attempt_timeout_s: float = Field(90.0, gt=0)
    screenshot_timeout_s: float = Field(10.0, gt=0)
    min_body_text: int = Field(400, ge=0)
    capture_screenshot: bool = True
    proxy_server: str | None = None
    proxy_username: str | None = None
    proxy_password: str | None = None


class RunSettings(BaseModel):
    max_candidates: int = Field(8, ge=1, le=50)
    score_only: bool = False
    heartbeat_s: float = Field(15.0, ge=0, description="0 disables heartbeats.")
    cancel_on_disconnect: bool = False


class WatchSettings(BaseModel):
    watchlists_path: str = "watchlists.json"
    run_immediately: bool = False


class MacroSettings(BaseModel):
    fred_api_key: str | None = None
    bls_api_key: str | None = None
    timeout_s: float = Field(10.0, gt=0)


class NotifySettings(BaseModel):
    webhook_url: str | None = None
    timeout_s: float = Field(10.0, gt=0)


class Settings(BaseModel):
    data_dir: str = "data"
    log_level: str = "INFO"
    log_file: str | None = None
    search: SearchSettings = SearchSettings()
    extraction: ExtractionSettings = ExtractionSettings()
    runs: RunSettings = RunSettings()
    watch: WatchSettings = WatchSettings()
    macro: MacroSettings = MacroSettings()
    notify: NotifySettings = NotifySettings()

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


@dataclass(frozen=True)
class SettingsLoader:
    """
    File-first settings loader with environment overrides.

    Default search (when path=None): ./dealscout.json, then ./config/dealscout.json;
    if neither exists the defaults are used.
    """

    env_prefix: str = "DEALSCOUT_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> Settings:
        p = self._resolve_path(path)
        raw = self._read_json_file(p) if p is not None else {}
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def load_json(self, text: str) -> Settings:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON payload: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Settings payload must be a JSON object")
        return self._apply_env_overrides(self._parse_root(raw))

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path | None:
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Settings file not found: {p}")
            return p
        for candidate in (Path("dealscout.json"), Path("config/dealscout.json")):
            if candidate.exists():
                return candidate
        return None

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported settings format for {p.name}; only .json is supported.")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{p} must hold a JSON object")
        return cast(dict[str, Any], data)

    def _parse_root(self, data: dict[str, Any]) -> Settings:
        try:
            return Settings.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Settings validation failed:\n{e}") from e

    @staticmethod
    def _section(cfg: Settings, name: str, updates: dict[str, Any]) -> Settings:
        if not updates:
            return cfg
        section = getattr(cfg, name).model_copy(update=updates)
        return cfg.model_copy(update={name: section})

    def _apply_env_overrides(self, cfg: Settings) -> Settings:
        prefix = self.env_prefix
        env = os.environ

        root: dict[str, Any] = {}
        if env.get(f"{prefix}DATA_DIR"):
            root["data_dir"] = env[f"{prefix}DATA_DIR"]
        if env.get(f"{prefix}LOG_LEVEL"):
            root["log_level"] = env[f"{prefix}LOG_LEVEL"].strip().upper()
        if root:
            cfg = cfg.model_copy(update=root)

        if env.get("SERPER_API_KEY"):
            cfg = self._section(cfg, "search", {"serper_api_key": env["SERPER_API_KEY"]})

        macro: dict[str, Any] = {}
        if env.get("FRED_API_KEY"):
            macro["fred_api_key"] = env["FRED_API_KEY"]
        if env.get("BLS_API_KEY"):
            macro["bls_api_key"] = env["BLS_API_KEY"]
        cfg = self._section(cfg, "macro", macro)

        if env.get(f"{prefix}WEBHOOK_URL"):
            cfg = self._section(cfg, "notify", {"webhook_url": env[f"{prefix}WEBHOOK_URL"]})

        runs: dict[str, Any] = {}
        score_only = env.get(f"{prefix}SCORE_ONLY")
        if score_only:
            runs["score_only"] = score_only.strip().lower() in _TRUTHY
        max_candidates = env.get(f"{prefix}MAX_CANDIDATES")
        if max_candidates:
            try:
                runs["max_candidates"] = max(1, int(max_candidates))
            except ValueError:
                logger.warning("Ignoring %sMAX_CANDIDATES=%r", prefix, max_candidates)
        heartbeat = env.get(f"{prefix}HEARTBEAT_S")
        if heartbeat:
            try:
                runs["heartbeat_s"] = max(0.0, float(heartbeat))
            except ValueError:
                logger.warning("Ignoring %sHEARTBEAT_S=%r", prefix, heartbeat)
        cfg = self._section(cfg, "runs", runs)

        extraction: dict[str, Any] = {}
        if env.get("BROWSER_HEADED", "").strip().lower() in _TRUTHY:
            extraction["headless"] = False
        host = env.get("BRIGHTDATA_HOST")
        if host:
            extraction["proxy_server"] = host if "://" in host else f"http://{host}"
            extraction["proxy_username"] = env.get("BRIGHTDATA_USERNAME") or None
            extraction["proxy_password"] = env.get("BRIGHTDATA_PASSWORD") or None
        return self._section(cfg, "extraction", extraction)


def load_settings(path: str | Path | None = None) -> Settings:
    """Convenience wrapper for one-shot callers."""
    return SettingsLoader().load(path)


__all__ = [
    "ExtractionSettings",
    "MacroSettings",
    "NotifySettings",
    "RunSettings",
    "SearchSettings",
    "Settings",
    "SettingsLoader",
    "WatchSettings",
    "load_settings",
]
