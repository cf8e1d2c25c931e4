from __future__ import annotations

from typing import Final

FREQUENCY_TYPES: Final[frozenset[str]] = frozenset({"daily", "weekly", "monthly", "custom"})

# Reads served from the cached snapshot for this long after a successful load.
CACHE_FRESHNESS_SECONDS: Final[float] = 5.0
# Coalescing window for reloads scheduled after ledger writes.
REFRESH_DEBOUNCE_SECONDS: Final[float] = 0.3

# Filter value meaning "every scope" (None already means the global pool).
ALL_GROUPS: Final[str] = "*"

TABLE_GROUPS: Final[str] = "groups"
TABLE_HABITS: Final[str] = "habits"
TABLE_REWARDS: Final[str] = "rewards"
TABLE_HABIT_LOGS: Final[str] = "habit_logs"
TABLE_ENERGY_LOGS: Final[str] = "energy_logs"
TABLE_REDEMPTIONS: Final[str] = "redeemed_rewards_log"

BULK_LOAD_TABLES: Final[tuple[str, ...]] = (
    TABLE_GROUPS,
    TABLE_HABITS,
    TABLE_REWARDS,
    TABLE_HABIT_LOGS,
    TABLE_ENERGY_LOGS,
    TABLE_REDEMPTIONS,
)

HABIT_UPDATABLE_FIELDS: Final[frozenset[str]] = frozenset({"name", "group_id", "frequency", "energy_value"})
# The redeemed flag is only ever set by the redemption batch.
REWARD_UPDATABLE_FIELDS: Final[frozenset[str]] = frozenset({"name", "group_id", "energy_cost", "description"})
