from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from habit_flywheel.db_converters import _format_ts
from habit_flywheel.db_models import Reward


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class RewardMixin:
    def upsert_reward(self: DbProtocol, user_id: str, reward: Reward, now: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO rewards(
                    id, user_id, name, group_id, energy_cost, description,
                    redeemed, redeemed_timestamp, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    group_id=excluded.group_id,
                    energy_cost=excluded.energy_cost,
                    description=excluded.description,
                    redeemed=excluded.redeemed,
                    redeemed_timestamp=excluded.redeemed_timestamp,
                    updated_at=excluded.updated_at
                WHERE rewards.user_id = excluded.user_id
                """,
                (
                    reward.id,
                    user_id,
                    reward.name,
                    reward.group_id,
                    reward.energy_cost,
                    reward.description,
                    1 if reward.redeemed else 0,
                    _format_ts(reward.redeemed_at) if reward.redeemed_at else None,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return cur.rowcount > 0

    def delete_reward(self: DbProtocol, user_id: str, reward_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM rewards WHERE user_id = ? AND id = ?", (user_id, reward_id))
        return cur.rowcount > 0
