"""
Student-view simulation API.

Why:
    Lets a teacher preview courses, links and events as a student of a chosen
    classroom and year. Only the session's viewing identity changes; the real
    user, ownership and edit rights stay untouched.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from identity_access.simulation import SimulationContext, derive_viewing_identity
from .common import _bad_request, _forbidden, _identity, _json_private, _serialize_user
from .security import _csrf_guard

simulation_router = APIRouter(tags=["Simulation"])
logger = logging.getLogger("portal.web")


class SimulationStart(BaseModel):
    year: Any = None
    classroom: Any = None


def _simulation_store(request: Request):
    from routes.auth import _resolve_active_main  # type: ignore

    return _resolve_active_main(request).SIMULATION_STORE


def _state_payload(real, ctx) -> dict:
    return {
        "active": ctx is not None,
        "simulation": ctx.to_dict() if ctx else None,
        "viewer": _serialize_user(derive_viewing_identity(real, ctx)),
    }


@simulation_router.get("/api/simulation")
async def get_simulation(request: Request):
    ident = _identity(request)
    return _json_private(_state_payload(ident.real, ident.simulation))


@simulation_router.post("/api/simulation")
async def start_simulation(request: Request, payload: SimulationStart):
    """Start (or replace) the simulation for the current session.

    Errors:
        400 `year_required` | `classroom_required` | `invalid_year` | `invalid_classroom`
        403 when the caller is not a teacher
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    if ident.real is None or not ident.real.is_teacher:
        return _forbidden("teacher_required")
    try:
        ctx = SimulationContext.build(payload.year, payload.classroom)
    except ValueError as exc:
        return _bad_request(str(exc))
    try:
        _simulation_store(request).start(ident.session_id, ctx, real_user=ident.real)
    except PermissionError as exc:
        return _forbidden(str(exc))
    return _json_private(_state_payload(ident.real, ctx))


@simulation_router.delete("/api/simulation")
async def exit_simulation(request: Request):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    _simulation_store(request).exit(ident.session_id)
    return _json_private(_state_payload(ident.real, None))
