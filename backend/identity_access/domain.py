"""
Identity domain constants and the portal user record.

Why:
- Centralize allowed roles to avoid drift between tools and web layer.
- Keep one user shape for profiles, sessions and the simulated viewing identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "teacher"})

DEFAULT_CLASSROOM = "A"
DEFAULT_YEAR = 6


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    role: str = "student"
    is_active: bool = True
    classroom: str = DEFAULT_CLASSROOM
    year: int = DEFAULT_YEAR
    profile_picture_url: Optional[str] = None

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"


def user_from_record(record: Mapping[str, Any]) -> User:
    """Build a `User` from a profile row (dict) with tolerant defaults."""
    role = str(record.get("role") or "student")
    if role not in ALLOWED_ROLES:
        role = "student"
    try:
        year = int(record.get("year") or DEFAULT_YEAR)
    except (TypeError, ValueError):
        year = DEFAULT_YEAR
    active = record.get("is_active")
    return User(
        id=str(record.get("id") or ""),
        name=str(record.get("name") or ""),
        email=str(record.get("email") or ""),
        role=role,
        is_active=True if active is None else bool(active),
        classroom=str(record.get("classroom") or DEFAULT_CLASSROOM),
        year=year,
        profile_picture_url=record.get("profile_picture_url") or None,
    )


def user_to_record(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "is_active": user.is_active,
        "classroom": user.classroom,
        "year": user.year,
        "profile_picture_url": user.profile_picture_url,
    }


__all__ = ["ALLOWED_ROLES", "User", "user_from_record", "user_to_record"]
