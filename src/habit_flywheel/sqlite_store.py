from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, TypeVar

from habit_flywheel.db import Database
from habit_flywheel.db_models import BulkLoad, EnergyDelta, Group, Habit, Reward
from habit_flywheel.errors import (
    PermissionDeniedError,
    ReferentialBlockError,
    RewardUnavailableError,
    TransientStoreError,
)
from habit_flywheel.time_utils import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqliteStore:
    """``RemoteStore`` over the local SQLite ``Database``, scoped to one account."""

    def __init__(self, db: Database, user_id: str, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self.user_id = user_id
        self._clock = clock

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.IntegrityError as exc:
            raise ReferentialBlockError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise TransientStoreError(str(exc)) from exc

    async def bulk_load(self) -> BulkLoad:
        try:
            return await self._run(self.db.load_all, self.user_id)
        except (IndexError, KeyError, TypeError, ValueError) as exc:
            raise TransientStoreError(f"malformed row in bulk load: {exc}") from exc

    async def upsert_group(self, group: Group) -> None:
        if not await self._run(self.db.upsert_group, self.user_id, group, self._clock()):
            raise PermissionDeniedError(f"Group {group.id} belongs to another account.")

    async def upsert_habit(self, habit: Habit) -> None:
        if not await self._run(self.db.upsert_habit, self.user_id, habit, self._clock()):
            raise PermissionDeniedError(f"Habit {habit.id} belongs to another account.")

    async def upsert_reward(self, reward: Reward) -> None:
        if not await self._run(self.db.upsert_reward, self.user_id, reward, self._clock()):
            raise PermissionDeniedError(f"Reward {reward.id} belongs to another account.")

    async def delete_group(self, group_id: str) -> None:
        if not await self._run(self.db.delete_group, self.user_id, group_id):
            logger.debug("delete_group matched no row id=%s", group_id)

    async def delete_habit(self, habit_id: str) -> None:
        if not await self._run(self.db.delete_habit, self.user_id, habit_id):
            logger.debug("delete_habit matched no row id=%s", habit_id)

    async def delete_reward(self, reward_id: str) -> None:
        if not await self._run(self.db.delete_reward, self.user_id, reward_id):
            logger.debug("delete_reward matched no row id=%s", reward_id)

    async def append_completion_and_energy(self, habit_id: str, energy: EnergyDelta, at: datetime) -> None:
        await self._run(self.db.complete_habit, self.user_id, habit_id, energy, at)

    async def append_redemption(
        self,
        reward_id: str,
        name: str,
        group_id: str | None,
        energy_cost: int,
        reason: str,
        at: datetime,
    ) -> None:
        redeemed = await self._run(
            self.db.redeem_reward, self.user_id, reward_id, name, group_id, energy_cost, reason, at
        )
        if not redeemed:
            raise RewardUnavailableError(reward_id)

    async def aclose(self) -> None:
        return None
