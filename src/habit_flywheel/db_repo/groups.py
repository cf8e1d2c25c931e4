from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from habit_flywheel.db_models import Group


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class GroupMixin:
    def upsert_group(self: DbProtocol, user_id: str, group: Group, now: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO groups(id, user_id, name, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    updated_at=excluded.updated_at
                WHERE groups.user_id = excluded.user_id
                """,
                (group.id, user_id, group.name, now.isoformat(), now.isoformat()),
            )
        return cur.rowcount > 0

    def delete_group(self: DbProtocol, user_id: str, group_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM groups WHERE user_id = ? AND id = ?", (user_id, group_id))
        return cur.rowcount > 0
