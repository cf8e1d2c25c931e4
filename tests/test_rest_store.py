from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from habit_flywheel.db_models import EnergyDelta, Group
from habit_flywheel.errors import (
    PermissionDeniedError,
    ReferentialBlockError,
    RewardUnavailableError,
    TransientStoreError,
)
from habit_flywheel.rest_store import RestStore

ROWS: dict[str, list[dict[str, object]]] = {
    "groups": [{"id": "g1", "name": "Health", "user_id": "u1"}],
    "habits": [
        {
            "id": "h1",
            "name": "Run",
            "group_id": "g1",
            "frequency": {"type": "weekly", "times": 2, "description": "", "weekdays": [2, 0]},
            "energy_value": 10,
        }
    ],
    "rewards": [
        {
            "id": "r1",
            "name": "Movie",
            "group_id": None,
            "energy_cost": 6,
            "description": None,
            "redeemed": True,
            "redeemed_timestamp": "2026-03-02T08:00:00.12Z",
        }
    ],
    "habit_logs": [{"habit_id": "h1", "completed": True, "timestamp": "2026-03-02T07:00:00+00:00"}],
    "energy_logs": [
        {"group_id": "g1", "amount": 10, "type": "gain", "reason": "run", "timestamp": "2026-03-02T07:00:00+00:00"},
        {"group_id": None, "amount": 6, "type": "spend", "reason": "movie", "timestamp": "2026-03-02T08:00:00+00:00"},
    ],
    "redeemed_rewards_log": [
        {"reward_id": "r1", "name": "Movie", "group_id": None, "energy_cost": 6, "timestamp": "2026-03-02T08:00:00+00:00"}
    ],
}


def _store(handler) -> RestStore:
    return RestStore(
        base_url="https://example.supabase.co/",
        api_key="anon",
        user_id="u1",
        access_token="token",
        transport=httpx.MockTransport(handler),
    )


def _run_with(handler, call):
    async def scenario():
        store = _store(handler)
        try:
            return await call(store)
        finally:
            await store.aclose()

    return asyncio.run(scenario())


def test_bulk_load_reads_every_table_for_the_user() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json=ROWS[table])

    load = _run_with(handler, lambda store: store.bulk_load())

    assert sorted(r.url.path for r in seen) == sorted(f"/rest/v1/{table}" for table in ROWS)
    assert all(r.url.params["user_id"] == "eq.u1" for r in seen)
    assert all(r.headers["apikey"] == "anon" for r in seen)
    assert all(r.headers["authorization"] == "Bearer token" for r in seen)
    assert load.groups == (Group(id="g1", name="Health"),)
    assert load.habits[0].frequency.weekdays == (0, 2)
    assert load.rewards[0].redeemed is True
    assert load.rewards[0].redeemed_at == datetime(2026, 3, 2, 8, 0, 0, 120000, tzinfo=timezone.utc)
    assert [e.signed_amount for e in load.energy_log] == [10, -6]
    assert load.redemption_log[0].reward_id == "r1"


def test_upsert_merges_duplicates() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201)

    _run_with(handler, lambda store: store.upsert_group(Group(id="g1", name="Health")))

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/groups"
    assert request.headers["prefer"] == "resolution=merge-duplicates,return=minimal"
    assert json.loads(request.content) == {"id": "g1", "user_id": "u1", "name": "Health"}


def test_delete_is_scoped_to_the_user() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    _run_with(handler, lambda store: store.delete_habit("h1"))

    assert seen[0].method == "DELETE"
    assert seen[0].url.params["id"] == "eq.h1"
    assert seen[0].url.params["user_id"] == "eq.u1"


def test_completion_is_one_rpc_call() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    at = datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc)
    _run_with(
        handler,
        lambda store: store.append_completion_and_energy("h1", EnergyDelta(group_id="g1", amount=10, reason="run"), at),
    )

    assert len(seen) == 1
    assert seen[0].url.path == "/rest/v1/rpc/complete_habit"
    assert json.loads(seen[0].content) == {
        "p_habit_id": "h1",
        "p_group_id": "g1",
        "p_amount": 10,
        "p_reason": "run",
        "p_timestamp": "2026-03-02T07:00:00+00:00",
    }


def test_refused_redemption_raises_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=False)

    at = datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc)
    with pytest.raises(RewardUnavailableError):
        _run_with(handler, lambda store: store.append_redemption("r1", "Movie", None, 6, "movie", at))


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (401, {"message": "JWT expired"}, PermissionDeniedError),
        (403, {"message": "denied"}, PermissionDeniedError),
        (409, {"message": "conflict"}, ReferentialBlockError),
        (400, {"code": "23503", "message": "violates foreign key constraint"}, ReferentialBlockError),
        (500, {"message": "boom"}, TransientStoreError),
        (503, None, TransientStoreError),
    ],
)
def test_status_codes_map_to_store_errors(status: int, body: object, expected: type[Exception]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    with pytest.raises(expected):
        _run_with(handler, lambda store: store.delete_group("g1"))


def test_transport_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(TransientStoreError):
        _run_with(handler, lambda store: store.bulk_load())


def test_malformed_rows_are_transient_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        if table == "habit_logs":
            return httpx.Response(200, json=[{"habit_id": "h1", "completed": True}])
        return httpx.Response(200, json=ROWS[table])

    with pytest.raises(TransientStoreError):
        _run_with(handler, lambda store: store.bulk_load())


def test_rows_with_bad_numbers_are_transient_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        if table == "energy_logs":
            return httpx.Response(200, json=[{"group_id": None, "amount": "lots", "type": "gain", "timestamp": "2026-03-02T07:00:00Z"}])
        return httpx.Response(200, json=ROWS[table])

    with pytest.raises(TransientStoreError):
        _run_with(handler, lambda store: store.bulk_load())
