from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Mapping

import httpx

from habit_flywheel.db_constants import (
    BULK_LOAD_TABLES,
    TABLE_ENERGY_LOGS,
    TABLE_GROUPS,
    TABLE_HABIT_LOGS,
    TABLE_HABITS,
    TABLE_REDEMPTIONS,
    TABLE_REWARDS,
)
from habit_flywheel.db_converters import (
    _format_ts,
    _group_payload,
    _habit_payload,
    _reward_payload,
    _row_to_energy_log,
    _row_to_group,
    _row_to_habit,
    _row_to_habit_log,
    _row_to_redemption,
    _row_to_reward,
)
from habit_flywheel.db_models import BulkLoad, EnergyDelta, Group, Habit, Reward
from habit_flywheel.errors import (
    PermissionDeniedError,
    ReferentialBlockError,
    RewardUnavailableError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = "23503"


def _error_detail(resp: httpx.Response) -> dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class RestStore:
    """
    ``RemoteStore`` over a PostgREST endpoint (Supabase ``/rest/v1``).

    Row-level security on the server limits every request to the signed-in
    user; ``user_id`` is still sent explicitly so rows are stamped with it.
    The two ledger batches are stored procedures so each runs in one server
    transaction:

    - ``rpc/complete_habit(p_habit_id, p_group_id, p_amount, p_reason, p_timestamp)``
    - ``rpc/redeem_reward(p_reward_id, p_name, p_group_id, p_energy_cost, p_reason, p_timestamp)``,
      returning ``false`` when the reward is missing or already redeemed
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_id: str,
        access_token: str | None = None,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token or api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout_seconds,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        try:
            resp = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise TransientStoreError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            detail = _error_detail(resp)
            message = str(detail.get("message") or resp.reason_phrase or "request failed")
            if resp.status_code in (401, 403):
                raise PermissionDeniedError(message, details=detail)
            if resp.status_code == 409 or detail.get("code") == FOREIGN_KEY_VIOLATION:
                raise ReferentialBlockError(message, details=detail)
            raise TransientStoreError(f"{method} {path} returned {resp.status_code}: {message}", details=detail)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientStoreError(f"{method} {path} returned invalid JSON") from exc

    async def _select(self, table: str) -> list[dict[str, Any]]:
        rows = await self._request("GET", f"/{table}", params={"select": "*", "user_id": f"eq.{self.user_id}"})
        return rows if isinstance(rows, list) else []

    async def _upsert(self, table: str, payload: dict[str, Any]) -> None:
        await self._request(
            "POST",
            f"/{table}",
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def _delete(self, table: str, row_id: str) -> None:
        await self._request(
            "DELETE",
            f"/{table}",
            params={"id": f"eq.{row_id}", "user_id": f"eq.{self.user_id}"},
        )

    async def bulk_load(self) -> BulkLoad:
        results = await asyncio.gather(*(self._select(table) for table in BULK_LOAD_TABLES))
        rows = dict(zip(BULK_LOAD_TABLES, results))
        logger.debug("bulk_load rows=%s", {table: len(found) for table, found in rows.items()})

        def convert(table: str, fn: Callable[[Mapping[str, Any]], Any]) -> tuple[Any, ...]:
            return tuple(fn(row) for row in rows[table])

        try:
            return BulkLoad(
                groups=convert(TABLE_GROUPS, _row_to_group),
                habits=convert(TABLE_HABITS, _row_to_habit),
                rewards=convert(TABLE_REWARDS, _row_to_reward),
                habit_log=convert(TABLE_HABIT_LOGS, _row_to_habit_log),
                energy_log=convert(TABLE_ENERGY_LOGS, _row_to_energy_log),
                redemption_log=convert(TABLE_REDEMPTIONS, _row_to_redemption),
            )
        except (IndexError, KeyError, TypeError, ValueError) as exc:
            raise TransientStoreError(f"malformed row in bulk load: {exc}") from exc

    async def upsert_group(self, group: Group) -> None:
        await self._upsert(TABLE_GROUPS, _group_payload(group, self.user_id))

    async def upsert_habit(self, habit: Habit) -> None:
        await self._upsert(TABLE_HABITS, _habit_payload(habit, self.user_id))

    async def upsert_reward(self, reward: Reward) -> None:
        await self._upsert(TABLE_REWARDS, _reward_payload(reward, self.user_id))

    async def delete_group(self, group_id: str) -> None:
        await self._delete(TABLE_GROUPS, group_id)

    async def delete_habit(self, habit_id: str) -> None:
        await self._delete(TABLE_HABITS, habit_id)

    async def delete_reward(self, reward_id: str) -> None:
        await self._delete(TABLE_REWARDS, reward_id)

    async def append_completion_and_energy(self, habit_id: str, energy: EnergyDelta, at: datetime) -> None:
        await self._request(
            "POST",
            "/rpc/complete_habit",
            json={
                "p_habit_id": habit_id,
                "p_group_id": energy.group_id,
                "p_amount": energy.amount,
                "p_reason": energy.reason,
                "p_timestamp": _format_ts(at),
            },
        )

    async def append_redemption(
        self,
        reward_id: str,
        name: str,
        group_id: str | None,
        energy_cost: int,
        reason: str,
        at: datetime,
    ) -> None:
        result = await self._request(
            "POST",
            "/rpc/redeem_reward",
            json={
                "p_reward_id": reward_id,
                "p_name": name,
                "p_group_id": group_id,
                "p_energy_cost": energy_cost,
                "p_reason": reason,
                "p_timestamp": _format_ts(at),
            },
        )
        if result is False:
            raise RewardUnavailableError(reward_id)

    async def aclose(self) -> None:
        await self._client.aclose()
