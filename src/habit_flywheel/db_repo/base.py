from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from habit_flywheel.db_converters import (
    _row_to_energy_log,
    _row_to_group,
    _row_to_habit,
    _row_to_habit_log,
    _row_to_redemption,
    _row_to_reward,
)
from habit_flywheel.db_models import BulkLoad


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE groups (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE habits (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        group_id TEXT REFERENCES groups(id),
                        frequency TEXT NOT NULL,
                        energy_value INTEGER NOT NULL CHECK(energy_value > 0),
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE rewards (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        group_id TEXT REFERENCES groups(id),
                        energy_cost INTEGER NOT NULL CHECK(energy_cost > 0),
                        description TEXT,
                        redeemed INTEGER NOT NULL DEFAULT 0,
                        redeemed_timestamp TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE habit_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        habit_id TEXT NOT NULL,
                        completed INTEGER NOT NULL DEFAULT 1,
                        timestamp TEXT NOT NULL
                    );

                    CREATE TABLE energy_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        group_id TEXT,
                        amount INTEGER NOT NULL CHECK(amount > 0),
                        type TEXT NOT NULL CHECK(type IN ('gain', 'spend')),
                        reason TEXT NOT NULL,
                        timestamp TEXT NOT NULL
                    );

                    CREATE TABLE redeemed_rewards_log (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        reward_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        group_id TEXT,
                        energy_cost INTEGER NOT NULL,
                        timestamp TEXT NOT NULL
                    );

                    CREATE INDEX idx_groups_user ON groups(user_id);
                    CREATE INDEX idx_habits_user ON habits(user_id);
                    CREATE INDEX idx_rewards_user ON rewards(user_id);
                    CREATE INDEX idx_habit_logs_user_habit ON habit_logs(user_id, habit_id, timestamp);
                    CREATE INDEX idx_energy_logs_user_group ON energy_logs(user_id, group_id);
                    CREATE INDEX idx_redemptions_user ON redeemed_rewards_log(user_id, timestamp);
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )

    def load_all(self, user_id: str) -> BulkLoad:
        with self._connect() as conn:
            # One read transaction so the six tables agree with each other.
            conn.execute("BEGIN")
            groups = conn.execute(
                "SELECT * FROM groups WHERE user_id = ? ORDER BY created_at ASC, id ASC", (user_id,)
            ).fetchall()
            habits = conn.execute(
                "SELECT * FROM habits WHERE user_id = ? ORDER BY created_at ASC, id ASC", (user_id,)
            ).fetchall()
            rewards = conn.execute(
                "SELECT * FROM rewards WHERE user_id = ? ORDER BY created_at ASC, id ASC", (user_id,)
            ).fetchall()
            habit_logs = conn.execute(
                "SELECT * FROM habit_logs WHERE user_id = ? ORDER BY timestamp ASC, id ASC", (user_id,)
            ).fetchall()
            energy_logs = conn.execute(
                "SELECT * FROM energy_logs WHERE user_id = ? ORDER BY timestamp ASC, id ASC", (user_id,)
            ).fetchall()
            redemptions = conn.execute(
                "SELECT * FROM redeemed_rewards_log WHERE user_id = ? ORDER BY timestamp ASC, id ASC",
                (user_id,),
            ).fetchall()
        return BulkLoad(
            groups=tuple(_row_to_group(r) for r in groups),
            habits=tuple(_row_to_habit(r) for r in habits),
            rewards=tuple(_row_to_reward(r) for r in rewards),
            habit_log=tuple(_row_to_habit_log(r) for r in habit_logs),
            energy_log=tuple(_row_to_energy_log(r) for r in energy_logs),
            redemption_log=tuple(_row_to_redemption(r) for r in redemptions),
        )
