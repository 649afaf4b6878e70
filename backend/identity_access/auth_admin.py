"""Auth admin adapter: credential changes live in the external auth service."""
from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger("portal.identity_access")


class AuthAdminProtocol(Protocol):
    def update_password(self, user_id: str, new_password: str) -> None: ...


class NullAuthAdmin:
    """Fallback adapter that signals the auth admin backend is not configured."""

    def update_password(self, user_id: str, new_password: str) -> None:  # noqa: D401
        raise RuntimeError("auth_admin_not_configured")


class SupabaseAuthAdmin:
    """Adapter over the official supabase client (service role key required)."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def update_password(self, user_id: str, new_password: str) -> None:
        self._client.auth.admin.update_user_by_id(user_id, {"password": new_password})
        logger.info("Password updated via auth admin")


__all__ = ["AuthAdminProtocol", "NullAuthAdmin", "SupabaseAuthAdmin"]
