from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from habit_flywheel.db_models import (
    EnergyLog,
    Frequency,
    Group,
    Habit,
    HabitLog,
    RedemptionLog,
    Reward,
)

_FRACTION_RE = re.compile(r"\.(\d+)")


def _get(row: Mapping[str, Any], key: str) -> Any:
    return row[key] if key in row.keys() else None


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    text = str(raw).strip().replace(" ", "T", 1)
    # PostgREST trims trailing zeros from microseconds.
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_ts(row: Mapping[str, Any], key: str = "timestamp") -> datetime:
    parsed = _parse_ts(_get(row, key))
    if parsed is None:
        raise ValueError(f"row has no {key}")
    return parsed


def _format_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_frequency(raw: Any) -> Frequency:
    data = json.loads(raw) if isinstance(raw, str) else (raw or {})
    if not isinstance(data, dict):
        data = {}
    period = data.get("period")
    weekdays = data.get("weekdays") or ()
    return Frequency(
        type=str(data.get("type") or "daily"),
        times=int(data.get("times") or 1),
        description=str(data.get("description") or ""),
        period=int(period) if period is not None else None,
        weekdays=tuple(sorted(int(d) for d in weekdays)),
    )


def _frequency_payload(frequency: Frequency) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": frequency.type,
        "times": frequency.times,
        "description": frequency.description,
    }
    if frequency.period is not None:
        payload["period"] = frequency.period
    if frequency.weekdays:
        payload["weekdays"] = list(frequency.weekdays)
    return payload


def _row_to_group(row: Mapping[str, Any]) -> Group:
    return Group(id=str(row["id"]), name=str(row["name"]))


def _row_to_habit(row: Mapping[str, Any]) -> Habit:
    return Habit(
        id=str(row["id"]),
        name=str(row["name"]),
        group_id=_get(row, "group_id"),
        frequency=_parse_frequency(_get(row, "frequency")),
        energy_value=int(row["energy_value"]),
    )


def _row_to_reward(row: Mapping[str, Any]) -> Reward:
    return Reward(
        id=str(row["id"]),
        name=str(row["name"]),
        group_id=_get(row, "group_id"),
        energy_cost=int(row["energy_cost"]),
        description=_get(row, "description") or None,
        redeemed=bool(_get(row, "redeemed") or False),
        redeemed_at=_parse_ts(_get(row, "redeemed_timestamp")),
    )


def _row_to_habit_log(row: Mapping[str, Any]) -> HabitLog:
    completed = _get(row, "completed")
    return HabitLog(
        habit_id=str(row["habit_id"]),
        timestamp=_require_ts(row),
        completed=bool(completed),
    )


def _row_to_energy_log(row: Mapping[str, Any]) -> EnergyLog:
    return EnergyLog(
        timestamp=_require_ts(row),
        group_id=_get(row, "group_id"),
        amount=int(row["amount"]),
        kind=str(row["type"]),
        reason=str(_get(row, "reason") or ""),
    )


def _row_to_redemption(row: Mapping[str, Any]) -> RedemptionLog:
    return RedemptionLog(
        reward_id=str(row["reward_id"]),
        name=str(row["name"]),
        group_id=_get(row, "group_id"),
        energy_cost=int(row["energy_cost"]),
        timestamp=_require_ts(row),
    )


def _group_payload(group: Group, user_id: str) -> dict[str, Any]:
    return {"id": group.id, "user_id": user_id, "name": group.name}


def _habit_payload(habit: Habit, user_id: str) -> dict[str, Any]:
    return {
        "id": habit.id,
        "user_id": user_id,
        "name": habit.name,
        "group_id": habit.group_id,
        "frequency": _frequency_payload(habit.frequency),
        "energy_value": habit.energy_value,
    }


def _reward_payload(reward: Reward, user_id: str) -> dict[str, Any]:
    return {
        "id": reward.id,
        "user_id": user_id,
        "name": reward.name,
        "group_id": reward.group_id,
        "energy_cost": reward.energy_cost,
        "description": reward.description,
        "redeemed": reward.redeemed,
        "redeemed_timestamp": _format_ts(reward.redeemed_at) if reward.redeemed_at else None,
    }
