"""Result type returned by every save/delete use case, plus the shared writer guard."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from identity_access.domain import User

T = TypeVar("T")


@dataclass(frozen=True)
class SaveResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "SaveResult":
        return cls(value=value, error=None)

    @classmethod
    def failure(cls, error: str) -> "SaveResult":
        return cls(value=None, error=error)


# Error codes shared by services and mapped to HTTP statuses by the web layer.
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
SIMULATION_ACTIVE = "simulation_active"
PERSISTENCE_FAILED = "persistence_failed"


def writer_error(actor: Optional[User], simulating: bool) -> Optional[str]:
    """Error code when `actor` may not write right now, else None."""
    if simulating:
        return SIMULATION_ACTIVE
    if actor is None or not actor.is_teacher:
        return FORBIDDEN
    return None


__all__ = ["SaveResult", "writer_error", "NOT_FOUND", "FORBIDDEN", "SIMULATION_ACTIVE", "PERSISTENCE_FAILED"]
