from __future__ import annotations

from habit_flywheel.db_models import (
    BulkLoad,
    EnergyDelta,
    EnergyLog,
    Group,
    Habit,
    HabitLog,
    RedemptionLog,
    Reward,
)
from habit_flywheel.db_repo import BaseDatabase, GroupMixin, HabitMixin, LogMixin, RewardMixin


class Database(BaseDatabase, GroupMixin, HabitMixin, RewardMixin, LogMixin):
    """SQLite row store holding every account's groups, habits, rewards and ledgers."""


__all__ = [
    "BulkLoad",
    "Database",
    "EnergyDelta",
    "EnergyLog",
    "Group",
    "Habit",
    "HabitLog",
    "RedemptionLog",
    "Reward",
]
