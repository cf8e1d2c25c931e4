from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from habit_flywheel.db_models import AppState, EnergyLog


@dataclass(frozen=True)
class EnergyBalances:
    per_group: dict[str, int]
    global_energy: int

    def group_energy(self, group_id: str | None) -> int:
        if group_id is None:
            return self.global_energy
        return self.per_group.get(group_id, 0)

    @property
    def total(self) -> int:
        return sum(self.per_group.values()) + self.global_energy


def compute_balances(energy_log: Iterable[EnergyLog], group_ids: Iterable[str]) -> EnergyBalances:
    per_group: dict[str, int] = {group_id: 0 for group_id in group_ids}
    global_energy = 0
    for log in energy_log:
        if log.group_id is None:
            global_energy += log.signed_amount
        else:
            # Events of deleted groups still fold into their own bucket.
            per_group[log.group_id] = per_group.get(log.group_id, 0) + log.signed_amount
    return EnergyBalances(per_group=per_group, global_energy=global_energy)


def group_energy(group_energies: Mapping[str, int], global_energy: int, group_id: str | None) -> int:
    if group_id is None:
        return global_energy
    return group_energies.get(group_id, 0)


def total_energy(state: AppState) -> int:
    return sum(state.group_energies.values()) + state.global_energy
