"""
Users API routes: teacher user management and self-service profile edits.

Why:
    Teachers keep the class roster tidy (deactivate, promote, delete students).
    Every user maintains their own profile and may change their password.

Permissions:
    - `/api/users*`: real teacher; writes are refused while simulating.
    - `/api/me/profile`: any authenticated user, for their own profile only.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from identity_access.auth_admin import AuthAdminProtocol, NullAuthAdmin
from teaching.services.users import UsersService
from .common import (
    _bad_request,
    _forbidden,
    _get_repo,
    _identity,
    _json_private,
    _result_error,
    _serialize_user,
)
from .security import _csrf_guard

users_router = APIRouter(tags=["Users"])  # explicit paths below

_AUTH_ADMIN: AuthAdminProtocol = NullAuthAdmin()


def set_auth_admin(adapter: AuthAdminProtocol) -> None:
    """Inject the password adapter (Supabase in production, fakes in tests)."""
    global _AUTH_ADMIN
    _AUTH_ADMIN = adapter


def _get_users_service() -> UsersService:
    return UsersService(_get_repo(), _AUTH_ADMIN)


def _revoke_sessions(request: Request, user_id: str) -> None:
    from routes.auth import _resolve_active_main  # type: ignore

    mod = _resolve_active_main(request)
    for sid in mod.SESSION_STORE.delete_for_user(user_id):
        mod.SIMULATION_STORE.exit(sid)


class UserPatch(BaseModel):
    is_active: Optional[bool] = None
    role: Optional[str] = None


class ProfilePatch(BaseModel):
    name: Any = None
    profile_picture_url: Optional[str] = None
    classroom: Any = None
    year: Any = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


@users_router.get("/api/users")
async def list_users(request: Request):
    """All profiles ordered by name (teachers only)."""
    ident = _identity(request)
    try:
        users = _get_users_service().list_users(ident.real)
    except PermissionError:
        return _forbidden()
    return _json_private([_serialize_user(u) for u in users])


@users_router.patch("/api/users/{user_id}")
async def update_user(request: Request, user_id: str, payload: UserPatch):
    """Toggle `is_active` or promote (`role: "teacher"`) a student.

    Exactly one of the two fields must be given. Demotion is not supported.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    fields = payload.model_fields_set
    service = _get_users_service()
    if fields == {"is_active"} and payload.is_active is not None:
        result = service.set_active(ident.real, user_id, payload.is_active, simulating=ident.simulating)
    elif fields == {"role"}:
        if payload.role != "teacher":
            return _bad_request("invalid_role")
        result = service.promote_to_teacher(ident.real, user_id, simulating=ident.simulating)
    else:
        return _bad_request("invalid_field")
    if not result.ok:
        return _result_error(result)
    if not result.value.is_active:
        _revoke_sessions(request, user_id)
    return _json_private(_serialize_user(result.value))


@users_router.delete("/api/users/{user_id}")
async def delete_user(request: Request, user_id: str):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = _get_users_service().delete_user(ident.real, user_id, simulating=ident.simulating)
    if not result.ok:
        return _result_error(result)
    _revoke_sessions(request, user_id)
    return _json_private({"deleted": user_id})


@users_router.patch("/api/me/profile")
async def update_my_profile(request: Request, payload: ProfilePatch):
    """Update the caller's profile; password changes go to the auth provider."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    fields = payload.model_fields_set
    kwargs = {
        name: getattr(payload, name)
        for name in ("name", "profile_picture_url", "classroom", "year")
        if name in fields
    }
    if payload.new_password and isinstance(_AUTH_ADMIN, NullAuthAdmin):
        # Late wiring: configuration may have appeared after startup
        from auth_wiring import wire_supabase_auth_admin_if_configured  # type: ignore

        wire_supabase_auth_admin_if_configured()
    result = _get_users_service().update_profile(
        ident.real,
        new_password=payload.new_password,
        confirm_password=payload.confirm_password,
        **kwargs,
    )
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_user(result.value))
