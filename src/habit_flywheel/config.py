from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from habit_flywheel.db_constants import CACHE_FRESHNESS_SECONDS, REFRESH_DEBOUNCE_SECONDS
from habit_flywheel.i18n import normalize_language_code

STORE_BACKENDS = {"sqlite", "rest"}


@dataclass(frozen=True)
class SyncConfig:
    freshness_seconds: float = CACHE_FRESHNESS_SECONDS
    debounce_seconds: float = REFRESH_DEBOUNCE_SECONDS


@dataclass(frozen=True)
class Settings:
    store_backend: str
    database_path: Path
    user_id: str
    tz: str
    language_code: str
    supabase_url: str | None
    supabase_api_key: str | None
    supabase_access_token: str | None
    request_timeout_seconds: float
    sync_config_path: Path
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _get_float(cfg: dict[str, Any], key: str, default: float) -> float:
    try:
        value = float(cfg.get(key, default))
    except (TypeError, ValueError):
        value = default
    return max(0.0, value)


def load_sync_config(path: Path) -> SyncConfig:
    if not path.exists():
        return SyncConfig()
    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        return SyncConfig()
    return SyncConfig(
        freshness_seconds=_get_float(raw, "freshness_seconds", CACHE_FRESHNESS_SECONDS),
        debounce_seconds=_get_float(raw, "debounce_seconds", REFRESH_DEBOUNCE_SECONDS),
    )


def load_settings() -> Settings:
    _load_env_file(Path(".env"))

    backend = os.getenv("HABIT_STORE_BACKEND", "sqlite").strip().lower()
    if backend not in STORE_BACKENDS:
        raise RuntimeError(f"HABIT_STORE_BACKEND must be one of: {', '.join(sorted(STORE_BACKENDS))}")

    supabase_url = os.getenv("SUPABASE_URL") or None
    supabase_key = os.getenv("SUPABASE_ANON_KEY") or None
    if backend == "rest":
        if not supabase_url or not supabase_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY are required for the rest backend")
        user_id = os.getenv("SUPABASE_USER_ID", "")
        if not user_id:
            raise RuntimeError("SUPABASE_USER_ID is required for the rest backend")
    else:
        user_id = os.getenv("HABIT_USER_ID", "local")

    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "15")
    try:
        timeout = float(timeout_raw)
    except ValueError:
        timeout = 15.0

    return Settings(
        store_backend=backend,
        database_path=Path(os.getenv("DATABASE_PATH", "./data/habits.db")),
        user_id=user_id,
        tz=os.getenv("TZ", "Europe/Oslo"),
        language_code=normalize_language_code(os.getenv("APP_LANGUAGE", "en")),
        supabase_url=supabase_url,
        supabase_api_key=supabase_key,
        supabase_access_token=os.getenv("SUPABASE_ACCESS_TOKEN") or None,
        request_timeout_seconds=timeout,
        sync_config_path=Path(os.getenv("SYNC_CONFIG", "./sync.yaml")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
