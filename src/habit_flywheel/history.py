from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Generic, Iterable, TypeVar

from habit_flywheel.db_constants import ALL_GROUPS
from habit_flywheel.db_models import AppState, EnergyLog, RedemptionLog
from habit_flywheel.i18n import t

T = TypeVar("T")


@dataclass(frozen=True)
class CompletionEntry:
    habit_id: str
    habit_name: str
    group_id: str | None
    group_name: str
    timestamp: datetime
    completed: bool
    orphaned: bool = False


@dataclass(frozen=True)
class DayGroup(Generic[T]):
    day: date
    entries: tuple[T, ...]


def _utc_day(ts: datetime) -> date:
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(timezone.utc).date()


def group_by_day(items: Iterable[T], stamp: Callable[[T], datetime]) -> list[DayGroup[T]]:
    """Bucket items by the UTC date of their timestamp, newest day first."""
    buckets: dict[date, list[T]] = {}
    for item in items:
        buckets.setdefault(_utc_day(stamp(item)), []).append(item)
    return [DayGroup(day=day, entries=tuple(buckets[day])) for day in sorted(buckets, reverse=True)]


def _matches(item_group: str | None, wanted: str | None) -> bool:
    return wanted == ALL_GROUPS or item_group == wanted


def completion_history(state: AppState, group_id: str | None = ALL_GROUPS, lang: str = "en") -> list[DayGroup[CompletionEntry]]:
    habits = {habit.id: habit for habit in state.habits}
    group_names = {group.id: group.name for group in state.groups}
    entries: list[CompletionEntry] = []
    for log in state.habit_log:
        habit = habits.get(log.habit_id)
        if habit is None:
            entry = CompletionEntry(
                habit_id=log.habit_id,
                habit_name=t("deleted_habit", lang),
                group_id=None,
                group_name=t("deleted_group", lang),
                timestamp=log.timestamp,
                completed=log.completed,
                orphaned=True,
            )
            if group_id == ALL_GROUPS:
                entries.append(entry)
            continue
        if habit.group_id is None:
            group_name = t("public_pool", lang)
        else:
            group_name = group_names.get(habit.group_id) or t("deleted_group", lang)
        if not _matches(habit.group_id, group_id):
            continue
        entries.append(
            CompletionEntry(
                habit_id=habit.id,
                habit_name=habit.name,
                group_id=habit.group_id,
                group_name=group_name,
                timestamp=log.timestamp,
                completed=log.completed,
            )
        )
    return group_by_day(entries, lambda e: e.timestamp)


def energy_history(state: AppState, group_id: str | None = ALL_GROUPS) -> list[DayGroup[EnergyLog]]:
    logs = [log for log in state.energy_log if _matches(log.group_id, group_id)]
    return group_by_day(logs, lambda log: log.timestamp)


def redemption_history(state: AppState, group_id: str | None = ALL_GROUPS) -> list[DayGroup[RedemptionLog]]:
    logs = [log for log in state.redemption_log if _matches(log.group_id, group_id)]
    return group_by_day(logs, lambda log: log.timestamp)
