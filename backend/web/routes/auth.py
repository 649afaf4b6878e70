"""
Authentication-related FastAPI routes (router-only module).

Why:
    Sign-in happens at Supabase Auth in the browser. The portal only exchanges
    the resulting access token for its own opaque session cookie, keeps the
    profile row in sync on first login and signs the user out again.

Notes:
    - This module purposely resolves `main` at request time to reuse the shared
      session/simulation stores and cookie policy, whichever import name
      (`main` or `backend.web.main`) the app was loaded under.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional

from fastapi import APIRouter, Request

from identity_access.domain import DEFAULT_CLASSROOM, DEFAULT_YEAR, User
from identity_access.simulation import derive_viewing_identity
from identity_access.tokens import AccessTokenError, verify_access_token
from teaching.scope import CLASSROOMS, SCHOOL_YEARS
from .common import _get_repo, _identity, _json_private, _private_error, _serialize_user
from .security import _csrf_guard


auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("portal.web")


def _parse_allowed_registration_domains(raw: str | None) -> set[str]:
    """Parse ALLOWED_REGISTRATION_DOMAINS into a normalized set of domains.

    Accepts a comma-separated list like "@school.example, @example.org";
    empty entries are ignored so trailing commas are harmless.
    """
    if not raw:
        return set()
    items = [part.strip().lower() for part in str(raw).split(",")]
    return {item for item in items if item}


def _is_allowed_registration_email(email: str, allowed_domains: set[str]) -> bool:
    """Return True if the email's domain is in `allowed_domains`.

    An empty allow-list means no restriction. Invalid emails are disallowed.
    """
    if not allowed_domains:
        return True
    if not isinstance(email, str):
        return False
    normalized = email.strip().lower()
    if "@" not in normalized:
        return False
    local, domain = normalized.rsplit("@", 1)
    if not local or not domain:
        return False
    return f"@{domain}" in allowed_domains


def _resolve_active_main(request: Request):
    """Return the active main module whose app matches the request.app.

    Tests may import the app as either `main` or `backend.web.main`. Prefer the
    module whose `app` object is identical to the ASGI app on the request.
    """
    import sys as _sys
    candidates = [m for m in (_sys.modules.get("main"), _sys.modules.get("backend.web.main")) if m]
    for m in candidates:
        if getattr(m, "app", None) is getattr(request, "app", None):
            return m
    return candidates[0] if candidates else None


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return ""


def _profile_from_claims(claims: Mapping[str, Any]) -> User:
    """Build a first-login student profile from the token's user metadata."""
    meta = claims.get("user_metadata") or {}
    if not isinstance(meta, Mapping):
        meta = {}
    email = str(claims.get("email") or "")
    name = str(meta.get("name") or meta.get("full_name") or email.split("@")[0] or "").strip()
    classroom = str(meta.get("classroom") or DEFAULT_CLASSROOM).strip().upper()
    if classroom not in CLASSROOMS:
        classroom = DEFAULT_CLASSROOM
    try:
        year = int(meta.get("year") or DEFAULT_YEAR)
    except (TypeError, ValueError):
        year = DEFAULT_YEAR
    if year not in SCHOOL_YEARS:
        year = DEFAULT_YEAR
    return User(
        id=str(claims["sub"]),
        name=name[:200],
        email=email,
        role="student",
        classroom=classroom,
        year=year,
        profile_picture_url=(meta.get("profile_picture_url") or None),
    )


@auth_router.post("/auth/session")
async def auth_session(request: Request):
    """Exchange a Supabase access token for a portal session cookie.

    Input:
        `Authorization: Bearer <token>` or JSON `{ "access_token": "..." }`.

    Behavior:
        - 200 with `{ user }` and a `Set-Cookie` for the session.
        - 401 `invalid_token` (bad signature, audience, expiry or missing sub).
        - 403 `account_inactive` when the profile was deactivated.
        - 403 `invalid_email_domain` when a new account is outside the
          configured school domains.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    token = _bearer_token(request)
    if not token:
        try:
            body = await request.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            token = str(body.get("access_token") or "")
    try:
        claims = verify_access_token(token, os.getenv("SUPABASE_JWT_SECRET", ""))
    except AccessTokenError as exc:
        logger.info("Session exchange rejected: %s", exc.code)
        status = 503 if exc.code == "verifier_not_configured" else 401
        return _private_error({"error": "unauthenticated", "detail": exc.code}, status_code=status)

    repo = _get_repo()
    user_id = str(claims["sub"])
    user = repo.get_profile(user_id)
    if user is None:
        allowed = _parse_allowed_registration_domains(os.getenv("ALLOWED_REGISTRATION_DOMAINS"))
        if not _is_allowed_registration_email(str(claims.get("email") or ""), allowed):
            return _private_error({"error": "forbidden", "detail": "invalid_email_domain"}, status_code=403)
        user = repo.create_profile(_profile_from_claims(claims))
        logger.info("Profile created on first login")
    if not user.is_active:
        return _private_error({"error": "forbidden", "detail": "account_inactive"}, status_code=403)

    mod = _resolve_active_main(request)
    rec = mod.SESSION_STORE.create(user_id=user.id, ttl_seconds=mod.SESSION_TTL_SECONDS)
    resp = _json_private({"user": _serialize_user(user)})
    resp.set_cookie(
        key=mod.SESSION_COOKIE_NAME,
        value=rec.session_id,
        **mod._cookie_opts(max_age=mod.SESSION_TTL_SECONDS),
    )
    return resp


@auth_router.post("/auth/logout")
async def auth_logout(request: Request):
    """Sign out: drop the session and any simulation, expire the cookie."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    mod = _resolve_active_main(request)
    sid = request.cookies.get(mod.SESSION_COOKIE_NAME)
    if sid:
        mod.SIMULATION_STORE.exit(sid)
        mod.SESSION_STORE.delete(sid)
    resp = _json_private({"signed_out": True})
    resp.delete_cookie(key=mod.SESSION_COOKIE_NAME, **mod._cookie_opts())
    return resp


@auth_router.get("/api/me")
async def get_me(request: Request):
    """Current user (or null), the viewing identity and the simulation state."""
    ident = _identity(request)
    sim = ident.simulation
    viewer: Optional[User] = derive_viewing_identity(ident.real, sim)
    return _json_private(
        {
            "user": _serialize_user(ident.real),
            "viewer": _serialize_user(viewer),
            "simulation": sim.to_dict() if sim else None,
        }
    )
