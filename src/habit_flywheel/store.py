"""
Boundary to the row store that holds an account's data.

Implementations raise ``StoreError`` subclasses on failure and never apply a
batch partially. They do not retry.
"""
from __future__ import annotations

from datetime import datetime
from typing import Protocol

from habit_flywheel.db_models import BulkLoad, EnergyDelta, Group, Habit, Reward


class RemoteStore(Protocol):
    async def bulk_load(self) -> BulkLoad: ...

    async def upsert_group(self, group: Group) -> None: ...

    async def upsert_habit(self, habit: Habit) -> None: ...

    async def upsert_reward(self, reward: Reward) -> None: ...

    async def delete_group(self, group_id: str) -> None: ...

    async def delete_habit(self, habit_id: str) -> None: ...

    async def delete_reward(self, reward_id: str) -> None: ...

    async def append_completion_and_energy(self, habit_id: str, energy: EnergyDelta, at: datetime) -> None: ...

    async def append_redemption(
        self,
        reward_id: str,
        name: str,
        group_id: str | None,
        energy_cost: int,
        reason: str,
        at: datetime,
    ) -> None: ...

    async def aclose(self) -> None: ...
