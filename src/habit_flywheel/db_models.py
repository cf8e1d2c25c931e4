from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping


@dataclass(frozen=True)
class Frequency:
    type: str
    times: int
    description: str = ""
    period: int | None = None
    weekdays: tuple[int, ...] = ()


@dataclass(frozen=True)
class Group:
    id: str
    name: str


@dataclass(frozen=True)
class Habit:
    id: str
    name: str
    group_id: str | None
    frequency: Frequency
    energy_value: int


@dataclass(frozen=True)
class Reward:
    id: str
    name: str
    group_id: str | None
    energy_cost: int
    description: str | None = None
    redeemed: bool = False
    redeemed_at: datetime | None = None


@dataclass(frozen=True)
class HabitLog:
    habit_id: str
    timestamp: datetime
    completed: bool


@dataclass(frozen=True)
class EnergyLog:
    timestamp: datetime
    group_id: str | None
    amount: int
    kind: str
    reason: str

    @property
    def signed_amount(self) -> int:
        return self.amount if self.kind == "gain" else -self.amount


@dataclass(frozen=True)
class RedemptionLog:
    reward_id: str
    name: str
    group_id: str | None
    energy_cost: int
    timestamp: datetime


@dataclass(frozen=True)
class AppState:
    """Whole-application snapshot. Replaced as a unit, never edited in place."""

    groups: tuple[Group, ...] = ()
    habits: tuple[Habit, ...] = ()
    rewards: tuple[Reward, ...] = ()
    group_energies: Mapping[str, int] = field(default_factory=dict)
    global_energy: int = 0
    habit_log: tuple[HabitLog, ...] = ()
    energy_log: tuple[EnergyLog, ...] = ()
    redemption_log: tuple[RedemptionLog, ...] = ()


EMPTY_STATE = AppState()


@dataclass(frozen=True)
class BulkLoad:
    """Every row of one account, as returned by a single store read."""

    groups: tuple[Group, ...] = ()
    habits: tuple[Habit, ...] = ()
    rewards: tuple[Reward, ...] = ()
    habit_log: tuple[HabitLog, ...] = ()
    energy_log: tuple[EnergyLog, ...] = ()
    redemption_log: tuple[RedemptionLog, ...] = ()


@dataclass(frozen=True)
class EnergyDelta:
    group_id: str | None
    amount: int
    reason: str
