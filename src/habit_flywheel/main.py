from __future__ import annotations

from habit_flywheel.config import Settings, load_sync_config
from habit_flywheel.db import Database
from habit_flywheel.logging_setup import setup_logging
from habit_flywheel.rest_store import RestStore
from habit_flywheel.service import HabitService
from habit_flywheel.sqlite_store import SqliteStore
from habit_flywheel.state_cache import StateCache
from habit_flywheel.store import RemoteStore
from habit_flywheel.time_utils import now_local


def build_store(settings: Settings) -> RemoteStore:
    if settings.store_backend == "rest":
        assert settings.supabase_url is not None and settings.supabase_api_key is not None
        return RestStore(
            base_url=settings.supabase_url,
            api_key=settings.supabase_api_key,
            user_id=settings.user_id,
            access_token=settings.supabase_access_token,
            timeout_seconds=settings.request_timeout_seconds,
        )
    return SqliteStore(Database(settings.database_path), settings.user_id)


def build_service(settings: Settings) -> HabitService:
    sync = load_sync_config(settings.sync_config_path)
    cache = StateCache(freshness_seconds=sync.freshness_seconds, debounce_seconds=sync.debounce_seconds)
    return HabitService(cache=cache, lang=settings.language_code, now=lambda: now_local(settings.tz))


async def open_session(settings: Settings) -> tuple[HabitService, RemoteStore]:
    """Wire logging, the store and the service, then sign in with a forced load."""
    setup_logging(settings.log_level)
    service = build_service(settings)
    store = build_store(settings)
    result = await service.sign_in(store)
    if not result.ok:
        await store.aclose()
        raise RuntimeError(result.message)
    return service, store
