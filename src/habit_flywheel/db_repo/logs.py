from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

from habit_flywheel.db_converters import _format_ts
from habit_flywheel.db_models import EnergyDelta


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class _RedemptionRefused(Exception):
    pass


class LogMixin:
    def complete_habit(self: DbProtocol, user_id: str, habit_id: str, energy: EnergyDelta, at: datetime) -> None:
        """Append the completion and its energy gain in one transaction."""
        stamp = _format_ts(at)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO habit_logs(user_id, habit_id, completed, timestamp) VALUES (?, ?, 1, ?)",
                (user_id, habit_id, stamp),
            )
            conn.execute(
                """
                INSERT INTO energy_logs(user_id, group_id, amount, type, reason, timestamp)
                VALUES (?, ?, ?, 'gain', ?, ?)
                """,
                (user_id, energy.group_id, energy.amount, energy.reason, stamp),
            )

    def redeem_reward(
        self: DbProtocol,
        user_id: str,
        reward_id: str,
        name: str,
        group_id: str | None,
        energy_cost: int,
        reason: str,
        at: datetime,
    ) -> bool:
        """
        Flip the reward flag, append the redemption and its energy spend.

        All three writes share one transaction. Returns False, with nothing
        written, when the reward is missing or was already redeemed.
        """
        stamp = _format_ts(at)
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    """
                    UPDATE rewards
                    SET redeemed = 1, redeemed_timestamp = ?, updated_at = ?
                    WHERE user_id = ? AND id = ? AND redeemed = 0
                    """,
                    (stamp, stamp, user_id, reward_id),
                )
                if cur.rowcount == 0:
                    raise _RedemptionRefused(reward_id)
                conn.execute(
                    """
                    INSERT INTO redeemed_rewards_log(user_id, reward_id, name, group_id, energy_cost, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, reward_id, name, group_id, energy_cost, stamp),
                )
                conn.execute(
                    """
                    INSERT INTO energy_logs(user_id, group_id, amount, type, reason, timestamp)
                    VALUES (?, ?, ?, 'spend', ?, ?)
                    """,
                    (user_id, group_id, energy_cost, reason, stamp),
                )
        except _RedemptionRefused:
            return False
        return True
