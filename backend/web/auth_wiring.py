"""
Shared helper for wiring the Supabase auth admin adapter.

Why:
    Password changes go through the Supabase admin API, which needs the
    service role key. Startup may happen before configuration is complete, so
    wiring is idempotent and can be retried lazily from the profile route.

Security:
    Requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY. The key stays
    server-side; it is never logged or returned to clients.
"""
from __future__ import annotations

import logging
import os


def wire_supabase_auth_admin_if_configured() -> bool:
    """Attempt to wire the Supabase auth admin adapter into the users routes.

    Behavior:
        - Returns True when wiring succeeds (adapter injected).
        - Returns False when not configured or any error occurs (keeps Null).
        - Safe and idempotent to call multiple times.
    """
    logger = logging.getLogger("portal.web")
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        return False
    try:
        from supabase import create_client  # type: ignore
        from identity_access.auth_admin import SupabaseAuthAdmin
        from routes import users as _users  # type: ignore

        client = create_client(url, key)
        _users.set_auth_admin(SupabaseAuthAdmin(client))
    except Exception as exc:
        logger.warning("Auth admin wiring skipped: %s: %s", exc.__class__.__name__, str(exc))
        return False
    logger.info("Auth admin adapter wired: Supabase")
    return True


__all__ = ["wire_supabase_auth_admin_if_configured"]
