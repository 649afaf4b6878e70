"""
Configuration and startup security checks for the portal backend.

Why: A school portal must not be deployed with placeholder secrets. This module
provides a single guard that enforces minimal production safety constraints
without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _is_placeholder(value: str) -> bool:
    val = (value or "").strip().upper()
    return not val or val == "DUMMY_DO_NOT_USE" or val.startswith("CHANGE_ME")


def current_environment() -> str:
    return (os.getenv("PORTAL_ENV", "dev") or "dev").lower()


def database_dsn() -> str:
    return (os.getenv("PORTAL_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - SUPABASE_JWT_SECRET must be set and not a placeholder (session exchange).
    - SUPABASE_SERVICE_ROLE_KEY must be set and not a placeholder.
    - The database DSN must not explicitly disable TLS.
    - SUPABASE_URL must use https when set.
    """
    if not is_prod_like(current_environment()):
        return  # dev/test remain permissive

    if _is_placeholder(os.getenv("SUPABASE_JWT_SECRET", "")):
        raise SystemExit(
            "Refusing to start: SUPABASE_JWT_SECRET is unset or a placeholder in production."
        )

    if _is_placeholder(os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")):
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    for key in ("DATABASE_URL", "PORTAL_DATABASE_URL"):
        if "sslmode=disable" in os.getenv(key, ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    supabase_url = (os.getenv("SUPABASE_URL") or "").strip().lower()
    if supabase_url.startswith("http://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")
