"""
User management (teachers acting on students) and self-service profile edits.

Rules:
    - Only a real teacher outside simulation manages users.
    - Management actions target students only: toggle active, promote to
      teacher, delete. Teachers cannot act on other teachers or themselves.
    - Everyone edits their own profile (name, picture, classroom, year) and may
      change their password; the password goes to the auth admin adapter and
      is never stored in the portal database.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from identity_access.auth_admin import AuthAdminProtocol, NullAuthAdmin
from identity_access.domain import User
from teaching.ports import PortalRepoProtocol
from teaching.scope import CLASSROOMS, SCHOOL_YEARS
from teaching.services.results import FORBIDDEN, NOT_FOUND, PERSISTENCE_FAILED, SIMULATION_ACTIVE, SaveResult

logger = logging.getLogger("portal.teaching")

MIN_PASSWORD_LENGTH = 6
_UNSET = object()


@dataclass
class UsersService:
    repo: PortalRepoProtocol
    auth_admin: AuthAdminProtocol = field(default_factory=NullAuthAdmin)

    def list_users(self, actor: Optional[User]) -> List[User]:
        if actor is None or not actor.is_teacher:
            raise PermissionError("forbidden")
        return self.repo.list_profiles()

    def _load_student_target(self, actor: Optional[User], user_id: str, simulating: bool):
        if simulating:
            return None, SIMULATION_ACTIVE
        if actor is None or not actor.is_teacher or actor.id == user_id:
            return None, FORBIDDEN
        try:
            target = self.repo.get_profile(user_id)
        except Exception as exc:
            logger.warning("Profile load failed: %s", exc.__class__.__name__)
            return None, PERSISTENCE_FAILED
        if target is None:
            return None, NOT_FOUND
        if target.role != "student":
            return None, FORBIDDEN
        return target, None

    def _update(self, user_id: str, **fields: Any) -> SaveResult:
        try:
            updated = self.repo.update_profile(user_id, **fields)
        except Exception as exc:
            logger.warning("Profile update failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if updated is None:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(updated)

    def set_active(self, actor: Optional[User], user_id: str, active: bool, *, simulating: bool = False) -> SaveResult:
        _target, error = self._load_student_target(actor, user_id, simulating)
        if error:
            return SaveResult.failure(error)
        return self._update(user_id, is_active=bool(active))

    def promote_to_teacher(self, actor: Optional[User], user_id: str, *, simulating: bool = False) -> SaveResult:
        _target, error = self._load_student_target(actor, user_id, simulating)
        if error:
            return SaveResult.failure(error)
        result = self._update(user_id, role="teacher")
        if result.ok:
            logger.info("User promoted to teacher id=%s", user_id)
        return result

    def delete_user(self, actor: Optional[User], user_id: str, *, simulating: bool = False) -> SaveResult:
        _target, error = self._load_student_target(actor, user_id, simulating)
        if error:
            return SaveResult.failure(error)
        try:
            deleted = self.repo.delete_profile(user_id)
        except Exception as exc:
            logger.warning("Profile delete failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if not deleted:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(user_id)

    def update_profile(
        self,
        actor: Optional[User],
        *,
        name: object = _UNSET,
        profile_picture_url: object = _UNSET,
        classroom: object = _UNSET,
        year: object = _UNSET,
        new_password: Optional[str] = None,
        confirm_password: Optional[str] = None,
    ) -> SaveResult:
        """Update the caller's own profile; validates everything before writing."""
        if actor is None:
            return SaveResult.failure(FORBIDDEN)
        fields: Dict[str, Any] = {}
        if name is not _UNSET:
            clean_name = name.strip() if isinstance(name, str) else ""
            if not clean_name or len(clean_name) > 200:
                return SaveResult.failure("invalid_name")
            fields["name"] = clean_name
        if profile_picture_url is not _UNSET:
            picture = profile_picture_url.strip() if isinstance(profile_picture_url, str) else ""
            fields["profile_picture_url"] = picture or None
        if classroom is not _UNSET:
            value = str(classroom or "").strip().upper()
            if value not in CLASSROOMS:
                return SaveResult.failure("invalid_classroom")
            fields["classroom"] = value
        if year is not _UNSET:
            try:
                year_value = int(year) if not isinstance(year, bool) else -1
            except (TypeError, ValueError):
                return SaveResult.failure("invalid_year")
            if year_value not in SCHOOL_YEARS:
                return SaveResult.failure("invalid_year")
            fields["year"] = year_value
        if new_password:
            if len(new_password) < MIN_PASSWORD_LENGTH:
                return SaveResult.failure("password_too_short")
            if new_password != confirm_password:
                return SaveResult.failure("password_mismatch")

        result = self._update(actor.id, **fields) if fields else SaveResult.success(self.repo.get_profile(actor.id))
        if not result.ok:
            return result
        if new_password:
            try:
                self.auth_admin.update_password(actor.id, new_password)
            except Exception as exc:
                logger.warning("Password change failed: %s", exc.__class__.__name__)
                return SaveResult.failure("password_change_failed")
        return result


__all__ = ["UsersService", "MIN_PASSWORD_LENGTH"]
