from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Protocol

from habit_flywheel.db_converters import _frequency_payload
from habit_flywheel.db_models import Habit


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class HabitMixin:
    def upsert_habit(self: DbProtocol, user_id: str, habit: Habit, now: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO habits(id, user_id, name, group_id, frequency, energy_value, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    group_id=excluded.group_id,
                    frequency=excluded.frequency,
                    energy_value=excluded.energy_value,
                    updated_at=excluded.updated_at
                WHERE habits.user_id = excluded.user_id
                """,
                (
                    habit.id,
                    user_id,
                    habit.name,
                    habit.group_id,
                    json.dumps(_frequency_payload(habit.frequency), ensure_ascii=False),
                    habit.energy_value,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return cur.rowcount > 0

    def delete_habit(self: DbProtocol, user_id: str, habit_id: str) -> bool:
        # Completion and energy events stay; history resolves them as orphans.
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM habits WHERE user_id = ? AND id = ?", (user_id, habit_id))
        return cur.rowcount > 0
