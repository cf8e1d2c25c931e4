from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable

from habit_flywheel.db_constants import ALL_GROUPS, HABIT_UPDATABLE_FIELDS, REWARD_UPDATABLE_FIELDS
from habit_flywheel.db_models import AppState, EnergyDelta, Frequency, Group, Habit, Reward
from habit_flywheel.economy import group_energy, total_energy
from habit_flywheel.errors import (
    AuthorizationError,
    HabitFlywheelError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from habit_flywheel.i18n import t
from habit_flywheel.recurrence import completion_count, validate_frequency
from habit_flywheel.state_cache import Listener, StateCache
from habit_flywheel.store import RemoteStore
from habit_flywheel.time_utils import now_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    code: str = "ok"
    message: str = ""
    entity_id: str | None = None


def _clean_name(value: Any, field: str = "name") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string", field=field)
    return value.strip()


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return value


def _require_frequency(value: Any) -> Frequency:
    if not isinstance(value, Frequency):
        raise ValidationError("frequency must be a Frequency", field="frequency")
    validate_frequency(value)
    return value


def _new_id() -> str:
    return str(uuid.uuid4())


class HabitService:
    """
    Operations the UI layer calls.

    Mutations return an ``OperationResult`` and never raise for store or
    validation failures. Queries read the current snapshot and fall back to
    empty values before the first load.
    """

    def __init__(
        self,
        cache: StateCache | None = None,
        lang: str = "en",
        now: Callable[[], datetime] = now_local,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self.cache = cache or StateCache()
        self.lang = lang
        self._now = now
        self._new_id = id_factory

    # -- session -------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self.cache.get()

    @property
    def loading(self) -> bool:
        return self.cache.loading

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.cache.subscribe(listener)

    async def sign_in(self, store: RemoteStore) -> OperationResult:
        try:
            await self.cache.start_session(store)
        except StoreError as exc:
            return self._failed(exc, "load_failed")
        return OperationResult(ok=True)

    def sign_out(self) -> None:
        self.cache.end_session()

    async def refresh_data(self, force: bool = False) -> OperationResult:
        try:
            await self.cache.refresh(force=force)
        except StoreError as exc:
            return self._failed(exc, "load_failed")
        return self._ok("refreshed")

    # -- groups (patched in place) -------------------------------------------

    async def add_group(self, name: str) -> OperationResult:
        try:
            store = self._require_session()
            session = self.cache.session
            group = Group(id=self._new_id(), name=_clean_name(name))
            await store.upsert_group(group)
        except HabitFlywheelError as exc:
            return self._failed(exc, "group_create_failed")
        self.cache.apply_group_upsert(group, session)
        logger.info("group created id=%s", group.id)
        return self._ok("group_created", entity_id=group.id)

    async def update_group(self, group_id: str, name: str) -> OperationResult:
        try:
            store = self._require_session()
            session = self.cache.session
            existing = self._require_group(group_id)
            group = replace(existing, name=_clean_name(name))
            await store.upsert_group(group)
        except HabitFlywheelError as exc:
            return self._failed(exc, "group_update_failed")
        self.cache.apply_group_upsert(group, session)
        logger.info("group updated id=%s", group.id)
        return self._ok("group_updated", entity_id=group.id)

    async def delete_group(self, group_id: str) -> OperationResult:
        try:
            store = self._require_session()
            session = self.cache.session
            await store.delete_group(group_id)
        except HabitFlywheelError as exc:
            return self._failed(exc, "group_delete_failed")
        self.cache.apply_group_removal(group_id, session)
        logger.info("group deleted id=%s", group_id)
        return self._ok("group_deleted", entity_id=group_id)

    # -- habits (reloaded) ---------------------------------------------------

    async def add_habit(
        self,
        name: str,
        group_id: str | None,
        frequency: Frequency,
        energy_value: int,
    ) -> OperationResult:
        try:
            store = self._require_session()
            habit = Habit(
                id=self._new_id(),
                name=_clean_name(name),
                group_id=group_id,
                frequency=frequency,
                energy_value=_positive_int(energy_value, "energy_value"),
            )
            self._validate_scope(group_id)
            _require_frequency(frequency)
            await store.upsert_habit(habit)
        except HabitFlywheelError as exc:
            return self._failed(exc, "habit_create_failed")
        return self._written("habit_created", habit.id)

    async def update_habit(self, habit_id: str, **changes: Any) -> OperationResult:
        try:
            store = self._require_session()
            _check_fields(changes, HABIT_UPDATABLE_FIELDS)
            habit = replace(self._require_habit(habit_id), **changes)
            _clean_name(habit.name)
            _positive_int(habit.energy_value, "energy_value")
            self._validate_scope(habit.group_id)
            _require_frequency(habit.frequency)
            await store.upsert_habit(habit)
        except HabitFlywheelError as exc:
            return self._failed(exc, "habit_update_failed")
        return self._written("habit_updated", habit.id)

    async def delete_habit(self, habit_id: str) -> OperationResult:
        try:
            store = self._require_session()
            await store.delete_habit(habit_id)
        except HabitFlywheelError as exc:
            return self._failed(exc, "habit_delete_failed")
        return self._written("habit_deleted", habit_id)

    async def complete_habit(self, habit_id: str) -> OperationResult:
        try:
            store = self._require_session()
            habit = self._require_habit(habit_id)
            energy = EnergyDelta(
                group_id=habit.group_id,
                amount=habit.energy_value,
                reason=t("reason_completed", self.lang, name=habit.name),
            )
            await store.append_completion_and_energy(habit.id, energy, at=self._now())
        except HabitFlywheelError as exc:
            return self._failed(exc, "habit_complete_failed")
        return self._written("habit_completed", habit.id, energy=habit.energy_value)

    # -- rewards (reloaded) --------------------------------------------------

    async def add_reward(
        self,
        name: str,
        group_id: str | None,
        energy_cost: int,
        description: str | None = None,
    ) -> OperationResult:
        try:
            store = self._require_session()
            reward = Reward(
                id=self._new_id(),
                name=_clean_name(name),
                group_id=group_id,
                energy_cost=_positive_int(energy_cost, "energy_cost"),
                description=description or None,
            )
            self._validate_scope(group_id)
            await store.upsert_reward(reward)
        except HabitFlywheelError as exc:
            return self._failed(exc, "reward_create_failed")
        return self._written("reward_created", reward.id)

    async def update_reward(self, reward_id: str, **changes: Any) -> OperationResult:
        try:
            store = self._require_session()
            _check_fields(changes, REWARD_UPDATABLE_FIELDS)
            reward = replace(self._require_reward(reward_id), **changes)
            _clean_name(reward.name)
            _positive_int(reward.energy_cost, "energy_cost")
            self._validate_scope(reward.group_id)
            await store.upsert_reward(reward)
        except HabitFlywheelError as exc:
            return self._failed(exc, "reward_update_failed")
        return self._written("reward_updated", reward.id)

    async def delete_reward(self, reward_id: str) -> OperationResult:
        try:
            store = self._require_session()
            await store.delete_reward(reward_id)
        except HabitFlywheelError as exc:
            return self._failed(exc, "reward_delete_failed")
        return self._written("reward_deleted", reward_id)

    async def redeem_reward(self, reward_id: str) -> OperationResult:
        try:
            store = self._require_session()
            reward = self._require_reward(reward_id)
            if reward.redeemed:
                raise AuthorizationError(
                    "reward_redeemed",
                    t("reward_already_redeemed", self.lang, name=reward.name),
                    {"reward_id": reward.id},
                )
            # Advisory only: another writer may spend the same energy before
            # the next reload lands.
            current = self.get_group_energy(reward.group_id)
            if current < reward.energy_cost:
                raise AuthorizationError(
                    "insufficient_energy",
                    t("insufficient_energy", self.lang, cost=reward.energy_cost, current=current),
                    {"required": reward.energy_cost, "available": current},
                )
            await store.append_redemption(
                reward.id,
                reward.name,
                reward.group_id,
                reward.energy_cost,
                reason=t("reason_redeemed", self.lang, name=reward.name),
                at=self._now(),
            )
        except HabitFlywheelError as exc:
            return self._failed(exc, "reward_redeem_failed")
        return self._written("reward_redeemed", reward.id, name=reward.name)

    # -- queries -------------------------------------------------------------

    def get_group_by_id(self, group_id: str) -> Group | None:
        return next((g for g in self.state.groups if g.id == group_id), None)

    def get_habit_by_id(self, habit_id: str) -> Habit | None:
        return next((h for h in self.state.habits if h.id == habit_id), None)

    def get_habits_by_group_id(self, group_id: str | None) -> list[Habit]:
        return [h for h in self.state.habits if h.group_id == group_id]

    def get_habit_completion_count(self, habit_id: str) -> int:
        return completion_count(self.state.habit_log, habit_id)

    def get_todays_habits(self, now: datetime | None = None) -> list[Habit]:
        return self.cache.todays_habits(now or self._now())

    def get_reward_by_id(self, reward_id: str) -> Reward | None:
        return next((r for r in self.state.rewards if r.id == reward_id), None)

    def get_rewards_by_group_id(self, group_id: str | None) -> list[Reward]:
        return [r for r in self.state.rewards if r.group_id == group_id]

    def get_available_rewards(self, group_id: str | None = ALL_GROUPS) -> list[Reward]:
        return [r for r in self.state.rewards if not r.redeemed and _in_scope(r.group_id, group_id)]

    def get_redeemed_rewards(self, group_id: str | None = ALL_GROUPS) -> list[Reward]:
        return [r for r in self.state.rewards if r.redeemed and _in_scope(r.group_id, group_id)]

    def get_group_energy(self, group_id: str | None) -> int:
        state = self.state
        return group_energy(state.group_energies, state.global_energy, group_id)

    def get_total_energy(self) -> int:
        return total_energy(self.state)

    # -- helpers -------------------------------------------------------------

    def _require_session(self) -> RemoteStore:
        store = self.cache.store
        if store is None:
            raise AuthorizationError("no_session", t("no_session", self.lang))
        return store

    def _require_group(self, group_id: str) -> Group:
        group = self.get_group_by_id(group_id)
        if group is None:
            raise NotFoundError("group", group_id)
        return group

    def _require_habit(self, habit_id: str) -> Habit:
        habit = self.get_habit_by_id(habit_id)
        if habit is None:
            raise NotFoundError("habit", habit_id)
        return habit

    def _require_reward(self, reward_id: str) -> Reward:
        reward = self.get_reward_by_id(reward_id)
        if reward is None:
            raise NotFoundError("reward", reward_id)
        return reward

    def _validate_scope(self, group_id: str | None) -> None:
        if group_id is not None and self.get_group_by_id(group_id) is None:
            raise ValidationError(f"Unknown group {group_id}", field="group_id")

    def _written(self, key: str, entity_id: str, **kwargs: object) -> OperationResult:
        self.cache.schedule_reload()
        logger.info("%s id=%s", key, entity_id)
        return self._ok(key, entity_id=entity_id, **kwargs)

    def _ok(self, key: str, entity_id: str | None = None, **kwargs: object) -> OperationResult:
        return OperationResult(ok=True, message=t(key, self.lang, **kwargs), entity_id=entity_id)

    def _failed(self, exc: HabitFlywheelError, fallback_key: str) -> OperationResult:
        if isinstance(exc, StoreError):
            message = t(fallback_key, self.lang)
        elif isinstance(exc, NotFoundError):
            message = t("not_found", self.lang)
        else:
            message = exc.message
        logger.warning("%s: %s (%s)", fallback_key, exc.code, exc.message)
        return OperationResult(ok=False, code=exc.code, message=message)


def _check_fields(changes: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(unknown)}", field=unknown[0])


def _in_scope(reward_group: str | None, wanted: str | None) -> bool:
    return wanted == ALL_GROUPS or reward_group == wanted
