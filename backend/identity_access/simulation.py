"""
Student-view simulation overlay.

Why:
    Teachers preview content as a student of a given classroom/year without
    switching accounts. The overlay never touches the real user; it derives a
    separate viewing identity used only for visibility decisions. Ownership and
    edit rights keep using the real identity.

State per session:
    Inactive → start(ctx) → Active(year, classroom) → exit() → Inactive.
    Logout calls `exit`. There is no timeout.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from identity_access.domain import User
from teaching.scope import CLASSROOMS, SCHOOL_YEARS

logger = logging.getLogger("portal.identity_access")


@dataclass(frozen=True)
class SimulationContext:
    year: int
    classroom: str

    @classmethod
    def build(cls, year: Any, classroom: Any) -> "SimulationContext":
        """Validate raw input into a context.

        Raises ValueError with `year_required`, `classroom_required`,
        `invalid_year` or `invalid_classroom`.
        """
        if year is None or (isinstance(year, str) and not year.strip()):
            raise ValueError("year_required")
        if classroom is None or not str(classroom).strip():
            raise ValueError("classroom_required")
        if isinstance(year, bool):
            raise ValueError("invalid_year")
        try:
            year_value = int(year)
        except (TypeError, ValueError):
            raise ValueError("invalid_year") from None
        if year_value not in SCHOOL_YEARS:
            raise ValueError("invalid_year")
        classroom_value = str(classroom).strip().upper()
        if classroom_value not in CLASSROOMS:
            raise ValueError("invalid_classroom")
        return cls(year=year_value, classroom=classroom_value)

    def to_dict(self) -> dict:
        return {"year": self.year, "classroom": self.classroom}


def derive_viewing_identity(real_user: Optional[User], ctx: Optional[SimulationContext]) -> Optional[User]:
    """Return the identity used for visibility filtering.

    Without a context this is `real_user` itself; with one it is a copy that
    is a student of the simulated classroom/year. `real_user` is never mutated.
    """
    if real_user is None or ctx is None:
        return real_user
    return replace(real_user, role="student", year=ctx.year, classroom=ctx.classroom)


class SimulationStore:
    """In-memory simulation state keyed by session id."""

    def __init__(self) -> None:
        self._data: Dict[str, SimulationContext] = {}

    def start(self, session_id: str, ctx: SimulationContext, *, real_user: Optional[User] = None) -> SimulationContext:
        if real_user is not None and not real_user.is_teacher:
            raise PermissionError("teacher_required")
        self._data[session_id] = ctx
        logger.info("Simulation started (year=%s classroom=%s)", ctx.year, ctx.classroom)
        return ctx

    def exit(self, session_id: str) -> None:
        if self._data.pop(session_id, None) is not None:
            logger.info("Simulation ended")

    def get(self, session_id: Optional[str]) -> Optional[SimulationContext]:
        if not session_id:
            return None
        return self._data.get(session_id)

    def is_active(self, session_id: Optional[str]) -> bool:
        return self.get(session_id) is not None


__all__ = ["SimulationContext", "SimulationStore", "derive_viewing_identity"]
