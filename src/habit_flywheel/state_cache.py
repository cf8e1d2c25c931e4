"""
In-process snapshot of one account's state, kept fresh against the store.

Reads never touch the network: they see whatever snapshot was last swapped in.
Loads replace the snapshot as a whole. Two kinds of writes keep it current:

- group edits are patched into the snapshot directly once the store accepts them
- ledger-affecting writes schedule a debounced forced reload, so balances and
  due-today sets are always recomputed from the store's ledger
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import date, datetime
from enum import Enum
from typing import Callable

from habit_flywheel.db_constants import CACHE_FRESHNESS_SECONDS, REFRESH_DEBOUNCE_SECONDS
from habit_flywheel.db_models import EMPTY_STATE, AppState, BulkLoad, Group, Habit
from habit_flywheel.economy import compute_balances
from habit_flywheel.errors import StoreError, TransientStoreError
from habit_flywheel.recurrence import todays_habits
from habit_flywheel.scheduler import SingleSlotScheduler
from habit_flywheel.store import RemoteStore

logger = logging.getLogger(__name__)

Listener = Callable[[AppState], None]


class CacheStatus(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"


def build_state(load: BulkLoad) -> AppState:
    balances = compute_balances(load.energy_log, (group.id for group in load.groups))
    return AppState(
        groups=load.groups,
        habits=load.habits,
        rewards=load.rewards,
        group_energies=balances.per_group,
        global_energy=balances.global_energy,
        habit_log=load.habit_log,
        energy_log=load.energy_log,
        redemption_log=load.redemption_log,
    )


class StateCache:
    def __init__(
        self,
        freshness_seconds: float = CACHE_FRESHNESS_SECONDS,
        debounce_seconds: float = REFRESH_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.freshness_seconds = freshness_seconds
        self.debounce_seconds = debounce_seconds
        self._clock = clock
        self._store: RemoteStore | None = None
        self._state: AppState = EMPTY_STATE
        self._status = CacheStatus.EMPTY
        self._fetched_at: float | None = None
        self._session = 0
        self._inflight: asyncio.Task[AppState] | None = None
        self._listeners: list[Listener] = []
        self._reload = SingleSlotScheduler("debounced reload")
        self._todays: tuple[AppState, date, list[Habit]] | None = None

    # -- reads ---------------------------------------------------------------

    def get(self) -> AppState:
        return self._state

    @property
    def status(self) -> CacheStatus:
        return self._status

    @property
    def store(self) -> RemoteStore | None:
        return self._store

    @property
    def loading(self) -> bool:
        return self._status is CacheStatus.LOADING

    @property
    def session(self) -> int:
        """Token that changes whenever a session starts or ends."""
        return self._session

    @property
    def reload_pending(self) -> bool:
        return self._reload.pending

    def is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self.freshness_seconds

    def todays_habits(self, now: datetime) -> list[Habit]:
        state = self._state
        cached = self._todays
        if cached is not None and cached[0] is state and cached[1] == now.date():
            return list(cached[2])
        habits = todays_habits(state.habits, state.habit_log, now)
        self._todays = (state, now.date(), habits)
        return list(habits)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- session -------------------------------------------------------------

    async def start_session(self, store: RemoteStore) -> AppState:
        """Attach ``store`` and force a full load. Raises ``StoreError`` if it fails."""
        self.end_session()
        self._store = store
        self._session += 1
        logger.info("session started")
        return await self.refresh(force=True)

    def end_session(self) -> None:
        had_session = self._store is not None
        self._reload.cancel()
        self._store = None
        self._session += 1
        self._inflight = None
        self._fetched_at = None
        self._status = CacheStatus.EMPTY
        if had_session or self._state is not EMPTY_STATE:
            self._swap(EMPTY_STATE)
        if had_session:
            logger.info("session ended, cache cleared")

    # -- loads ---------------------------------------------------------------

    async def refresh(self, force: bool = False) -> AppState:
        """
        Return a snapshot no older than the freshness window.

        Without ``force`` a fresh snapshot is served as is and a load already in
        flight is joined. A failed load raises ``StoreError``; a previously
        loaded snapshot stays in place.
        """
        store = self._store
        if store is None:
            return self._state
        if not force:
            if self._status is CacheStatus.READY and self.is_fresh():
                logger.debug("serving cached snapshot")
                return self._state
            if self._inflight is not None:
                return await asyncio.shield(self._inflight)

        inflight = asyncio.get_running_loop().create_task(self._load(store, self._session))
        self._inflight = inflight
        try:
            return await asyncio.shield(inflight)
        finally:
            if self._inflight is inflight:
                self._inflight = None

    async def _load(self, store: RemoteStore, session: int) -> AppState:
        had_snapshot = self._fetched_at is not None
        self._status = CacheStatus.LOADING
        try:
            load = await store.bulk_load()
        except StoreError as exc:
            self._settle_failed(session, had_snapshot)
            if had_snapshot:
                logger.warning("refresh failed, keeping cached snapshot: %s", exc.message)
            else:
                logger.warning("initial load failed: %s", exc.message)
            raise
        except Exception as exc:
            self._settle_failed(session, had_snapshot)
            logger.exception("bulk load failed outside the store error types")
            raise TransientStoreError(f"bulk load failed: {exc}") from exc
        except BaseException:
            self._settle_failed(session, had_snapshot)
            raise

        if session != self._session:
            logger.info("discarding load from an ended session")
            return self._state

        state = build_state(load)
        self._fetched_at = self._clock()
        self._status = CacheStatus.READY
        logger.info(
            "loaded groups=%d habits=%d rewards=%d completions=%d energy_events=%d",
            len(state.groups),
            len(state.habits),
            len(state.rewards),
            len(state.habit_log),
            len(state.energy_log),
        )
        self._swap(state)
        return state

    def _settle_failed(self, session: int, had_snapshot: bool) -> None:
        if session != self._session:
            return
        self._status = CacheStatus.READY if had_snapshot else CacheStatus.EMPTY

    # -- writes --------------------------------------------------------------

    def apply_group_upsert(self, group: Group, session: int) -> None:
        if not self._is_current(session):
            logger.info("dropping group patch from an ended session id=%s", group.id)
            return
        state = self._state
        groups = list(state.groups)
        for idx, existing in enumerate(groups):
            if existing.id == group.id:
                groups[idx] = group
                break
        else:
            groups.append(group)
        energies = dict(state.group_energies)
        energies.setdefault(group.id, 0)
        self._swap(replace(state, groups=tuple(groups), group_energies=energies))

    def apply_group_removal(self, group_id: str, session: int) -> None:
        if not self._is_current(session):
            logger.info("dropping group removal from an ended session id=%s", group_id)
            return
        state = self._state
        energies = dict(state.group_energies)
        energies.pop(group_id, None)
        groups = tuple(g for g in state.groups if g.id != group_id)
        self._swap(replace(state, groups=groups, group_energies=energies))

    def _is_current(self, session: int) -> bool:
        return self._store is not None and session == self._session

    def schedule_reload(self) -> None:
        if self._store is None:
            return
        self._reload.schedule(self.debounce_seconds, self._debounced_reload)

    async def _debounced_reload(self) -> None:
        try:
            await self.refresh(force=True)
        except StoreError as exc:
            logger.warning("debounced reload failed: %s", exc.message)

    async def wait_for_reload(self) -> None:
        await self._reload.wait_idle()

    def _swap(self, state: AppState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("state listener failed")
