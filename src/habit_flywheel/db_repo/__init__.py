from .base import BaseDatabase
from .groups import GroupMixin
from .habits import HabitMixin
from .rewards import RewardMixin
from .logs import LogMixin

__all__ = [
    "BaseDatabase",
    "GroupMixin",
    "HabitMixin",
    "RewardMixin",
    "LogMixin",
]
