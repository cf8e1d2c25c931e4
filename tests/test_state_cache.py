from __future__ import annotations

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from habit_flywheel.db_models import EMPTY_STATE, AppState, BulkLoad, EnergyLog, Frequency, Group, Habit
from habit_flywheel.errors import TransientStoreError
from habit_flywheel.state_cache import CacheStatus, StateCache, build_state


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _load() -> BulkLoad:
    return BulkLoad(
        groups=(Group(id="g1", name="Health"),),
        habits=(Habit(id="h1", name="Run", group_id="g1", frequency=Frequency(type="daily", times=1), energy_value=5),),
        energy_log=(
            EnergyLog(timestamp=_dt(2026, 3, 2), group_id="g1", amount=5, kind="gain", reason="run"),
            EnergyLog(timestamp=_dt(2026, 3, 2), group_id=None, amount=2, kind="gain", reason="tidy"),
        ),
    )


def test_build_state_derives_balances() -> None:
    state = build_state(_load())
    assert dict(state.group_energies) == {"g1": 5}
    assert state.global_energy == 2


def test_reads_within_freshness_window_do_not_hit_the_store(fake_store) -> None:
    clock = FakeClock()
    cache = StateCache(freshness_seconds=5.0, clock=clock)
    fake_store.load = _load()

    async def scenario() -> None:
        await cache.start_session(fake_store)
        clock.now += 4.9
        await cache.refresh()
        await cache.refresh()
        assert fake_store.loads == 1
        clock.now += 0.2
        await cache.refresh()
        assert fake_store.loads == 2

    asyncio.run(scenario())


def test_forced_refresh_always_loads(fake_store) -> None:
    cache = StateCache(clock=FakeClock())

    async def scenario() -> None:
        await cache.start_session(fake_store)
        await cache.refresh(force=True)

    asyncio.run(scenario())
    assert fake_store.loads == 2


def test_concurrent_refreshes_share_one_load(fake_store) -> None:
    clock = FakeClock()
    cache = StateCache(clock=clock)

    async def scenario() -> None:
        await cache.start_session(fake_store)
        clock.now += 60
        first, second = await asyncio.gather(cache.refresh(), cache.refresh())
        assert first is second

    asyncio.run(scenario())
    assert fake_store.loads == 2


def test_debounced_reload_coalesces_a_burst(fake_store) -> None:
    cache = StateCache(debounce_seconds=0.05, clock=FakeClock())

    async def scenario() -> None:
        await cache.start_session(fake_store)
        for _ in range(3):
            cache.schedule_reload()
            await asyncio.sleep(0.02)
        assert cache.reload_pending is True
        await cache.wait_for_reload()
        assert cache.reload_pending is False

    asyncio.run(scenario())
    assert fake_store.loads == 2


def test_failed_refresh_keeps_the_cached_snapshot(fake_store, transient_error) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.load = _load()

    async def scenario() -> None:
        loaded = await cache.start_session(fake_store)
        fake_store.fail = transient_error
        with pytest.raises(TransientStoreError):
            await cache.refresh(force=True)
        assert cache.get() is loaded
        assert cache.status is CacheStatus.READY

    asyncio.run(scenario())


def test_failed_debounced_reload_is_swallowed(fake_store, transient_error) -> None:
    cache = StateCache(debounce_seconds=0.01, clock=FakeClock())
    fake_store.load = _load()

    async def scenario() -> None:
        loaded = await cache.start_session(fake_store)
        fake_store.fail = transient_error
        cache.schedule_reload()
        await cache.wait_for_reload()
        assert cache.get() is loaded

    asyncio.run(scenario())


def test_initial_failure_leaves_cache_empty(fake_store, transient_error) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.fail = transient_error

    async def scenario() -> None:
        with pytest.raises(TransientStoreError):
            await cache.start_session(fake_store)

    asyncio.run(scenario())
    assert cache.get() is EMPTY_STATE
    assert cache.status is CacheStatus.EMPTY


def test_load_finishing_after_sign_out_is_discarded(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    seen: list[AppState] = []
    cache.subscribe(seen.append)

    async def scenario() -> None:
        await cache.start_session(fake_store)
        fake_store.load = _load()
        fake_store.gate = asyncio.Event()
        pending = asyncio.ensure_future(cache.refresh(force=True))
        while fake_store.loads < 2:
            await asyncio.sleep(0)
        assert cache.loading is True
        cache.end_session()
        fake_store.gate.set()
        await pending

    asyncio.run(scenario())
    assert cache.get() is EMPTY_STATE
    assert cache.store is None
    assert all(state.groups == () for state in seen)


def test_listeners_see_each_swap_until_unsubscribed(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    seen: list[AppState] = []
    unsubscribe = cache.subscribe(seen.append)
    fake_store.load = _load()

    async def scenario() -> None:
        await cache.start_session(fake_store)
        unsubscribe()
        await cache.refresh(force=True)

    asyncio.run(scenario())
    assert len(seen) == 1
    assert seen[0].groups[0].name == "Health"


def test_broken_listener_does_not_block_the_swap(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    seen: list[AppState] = []

    def broken(state: AppState) -> None:
        raise RuntimeError("listener bug")

    cache.subscribe(broken)
    cache.subscribe(seen.append)
    fake_store.load = _load()
    asyncio.run(cache.start_session(fake_store))
    assert len(seen) == 1


def test_group_patches_replace_the_snapshot(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.load = _load()
    asyncio.run(cache.start_session(fake_store))
    before = cache.get()

    cache.apply_group_upsert(Group(id="g2", name="Study"), cache.session)
    cache.apply_group_upsert(Group(id="g1", name="Fitness"), cache.session)
    patched = cache.get()
    assert patched is not before
    assert [g.name for g in patched.groups] == ["Fitness", "Study"]
    assert dict(patched.group_energies) == {"g1": 5, "g2": 0}
    assert [g.name for g in before.groups] == ["Health"]

    cache.apply_group_removal("g2", cache.session)
    assert [g.id for g in cache.get().groups] == ["g1"]
    assert "g2" not in cache.get().group_energies
    assert fake_store.loads == 1


def test_todays_habits_follow_the_snapshot(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.load = _load()
    asyncio.run(cache.start_session(fake_store))
    now = _dt(2026, 3, 4)
    first = cache.todays_habits(now)
    assert [h.id for h in first] == ["h1"]
    first.clear()
    assert [h.id for h in cache.todays_habits(now)] == ["h1"]


def test_debounced_reload_lands_after_the_last_trigger(fake_store) -> None:
    cache = StateCache(debounce_seconds=0.05, clock=FakeClock())

    async def scenario() -> float:
        loop = asyncio.get_running_loop()
        await cache.start_session(fake_store)
        for _ in range(3):
            cache.schedule_reload()
            last_trigger = loop.time()
            await asyncio.sleep(0.02)
        await cache.wait_for_reload()
        return last_trigger

    last_trigger = asyncio.run(scenario())
    assert fake_store.loads == 2
    # Without re-arming the first trigger would have fired 10 ms after the last one.
    assert fake_store.load_times[-1] - last_trigger >= 0.045


def test_unexpected_load_error_settles_status(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.load = _load()

    async def scenario() -> None:
        loaded = await cache.start_session(fake_store)
        fake_store.fail = ValueError("malformed row")
        with pytest.raises(TransientStoreError):
            await cache.refresh(force=True)
        assert cache.status is CacheStatus.READY
        assert cache.loading is False
        assert cache.get() is loaded

    asyncio.run(scenario())


def test_unexpected_initial_load_error_leaves_cache_empty(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.fail = KeyError("id")

    async def scenario() -> None:
        with pytest.raises(TransientStoreError):
            await cache.start_session(fake_store)

    asyncio.run(scenario())
    assert cache.status is CacheStatus.EMPTY
    assert cache.loading is False


def test_group_patches_from_an_ended_session_are_dropped(fake_store) -> None:
    cache = StateCache(clock=FakeClock())
    fake_store.load = _load()
    asyncio.run(cache.start_session(fake_store))
    stale = cache.session

    cache.end_session()
    cache.apply_group_upsert(Group(id="g9", name="Leaky"), stale)
    cache.apply_group_removal("g1", stale)
    assert cache.get() is EMPTY_STATE

    asyncio.run(cache.start_session(fake_store))
    cache.apply_group_upsert(Group(id="g9", name="Leaky"), stale)
    assert [g.id for g in cache.get().groups] == ["g1"]
