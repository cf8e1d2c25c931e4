"""
Recurrence rules: which habits are still due today.

A habit is due while its completions inside the current window are fewer than
``frequency.times``. Windows are taken in the zone of ``now``:

- daily: the calendar day of ``now``
- weekly: from Sunday 00:00 of the current week up to ``now``
- monthly: from the first day of the current month

``custom`` frequencies and unknown kinds use the daily rule and ignore
``period``. ``weekly.weekdays`` is descriptive only and never gates due-ness.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from habit_flywheel.db_constants import FREQUENCY_TYPES
from habit_flywheel.db_models import Frequency, Habit, HabitLog
from habit_flywheel.errors import ValidationError
from habit_flywheel.i18n import t
from habit_flywheel.time_utils import start_of_month, to_local, week_range_for


def completion_count(habit_log: Iterable[HabitLog], habit_id: str) -> int:
    return sum(1 for log in habit_log if log.habit_id == habit_id and log.completed)


def completions_in_window(habit: Habit, habit_log: Iterable[HabitLog], now: datetime) -> int:
    stamps = [to_local(log.timestamp, now) for log in habit_log if log.habit_id == habit.id and log.completed]
    kind = habit.frequency.type
    if kind == "weekly":
        week = week_range_for(now)
        return sum(1 for ts in stamps if week.start <= ts <= now)
    if kind == "monthly":
        month_start = start_of_month(now)
        return sum(1 for ts in stamps if ts >= month_start)
    today = now.date()
    return sum(1 for ts in stamps if ts.date() == today)


def is_due_today(habit: Habit, habit_log: Iterable[HabitLog], now: datetime) -> bool:
    return completions_in_window(habit, habit_log, now) < habit.frequency.times


def todays_habits(habits: Sequence[Habit], habit_log: Sequence[HabitLog], now: datetime) -> list[Habit]:
    return [habit for habit in habits if is_due_today(habit, habit_log, now)]


def describe_frequency(frequency: Frequency, lang: str = "en") -> str:
    if frequency.type == "daily":
        return t("freq_daily", lang, times=frequency.times)
    if frequency.type == "weekly":
        if frequency.weekdays:
            names = t("weekdays", lang).split(",")
            days = t("weekday_sep", lang).join(names[day] for day in frequency.weekdays)
            return t("freq_weekly_days", lang, days=days, times=frequency.times)
        return t("freq_weekly", lang, times=frequency.times)
    if frequency.type == "monthly":
        return t("freq_monthly", lang, times=frequency.times)
    if frequency.type == "custom" and frequency.period:
        return t("freq_custom", lang, period=frequency.period, times=frequency.times)
    return frequency.description


def validate_frequency(frequency: Frequency) -> None:
    if frequency.type not in FREQUENCY_TYPES:
        raise ValidationError(f"Unknown frequency type: {frequency.type}", field="frequency.type")
    if frequency.times < 1:
        raise ValidationError("Frequency times must be at least 1", field="frequency.times")
    if frequency.period is not None and frequency.period < 1:
        raise ValidationError("Custom period must be a positive number of days", field="frequency.period")
    if any(day < 0 or day > 6 for day in frequency.weekdays):
        raise ValidationError("Weekdays must be between 0 (Sunday) and 6 (Saturday)", field="frequency.weekdays")


def make_frequency(
    kind: str,
    times: int = 1,
    period: int | None = None,
    weekdays: Iterable[int] = (),
    lang: str = "en",
) -> Frequency:
    frequency = Frequency(
        type=kind,
        times=times,
        period=period if kind == "custom" else None,
        weekdays=tuple(sorted(set(weekdays))) if kind == "weekly" else (),
    )
    validate_frequency(frequency)
    return Frequency(
        type=frequency.type,
        times=frequency.times,
        description=describe_frequency(frequency, lang),
        period=frequency.period,
        weekdays=frequency.weekdays,
    )
