"""
Error taxonomy for the sync core.

Every error carries a machine-readable ``code`` so callers can branch on it
without parsing messages. Adapters raise ``StoreError`` subclasses; the service
layer turns any of these into a failed ``OperationResult``.
"""
from __future__ import annotations

from typing import Any


class HabitFlywheelError(Exception):
    """Base class for all application-level errors."""

    code: str = "internal_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ---------------------------------------------------------------------------
# Adapter failures
# ---------------------------------------------------------------------------

class StoreError(HabitFlywheelError):
    code = "store_error"


class TransientStoreError(StoreError):
    code = "transient_failure"


class PermissionDeniedError(StoreError):
    code = "permission_denied"


class ReferentialBlockError(StoreError):
    code = "referential_block"


class RewardUnavailableError(StoreError):
    code = "reward_unavailable"

    def __init__(self, reward_id: str) -> None:
        super().__init__(
            message=f"Reward {reward_id} is missing or already redeemed.",
            details={"reward_id": reward_id},
        )


# ---------------------------------------------------------------------------
# Local refusals (raised before any network call)
# ---------------------------------------------------------------------------

class AuthorizationError(HabitFlywheelError):
    code = "unauthorized"

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.code = code


class ValidationError(HabitFlywheelError):
    code = "invalid_input"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, {"field": field} if field else None)


class NotFoundError(HabitFlywheelError):
    code = "not_found"

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(
            message=f"{kind} {entity_id} not found.",
            details={"kind": kind, "id": entity_id},
        )
