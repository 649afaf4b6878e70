"""
Helpers shared by the API routers: repository wiring, identity, responses.

Persistence:
    Prefers the Postgres-backed repo when psycopg and a DSN are available;
    falls back to the in-memory repo for tests/local offline work. Tests call
    `set_repo` to override the implementation for isolation.

Identity:
    The auth middleware stores the real user, the session id, the simulation
    context and the derived viewing identity on `request.state`. Routers read
    them through `_identity(request)`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from config import database_dsn  # type: ignore
from identity_access.domain import User
from identity_access.simulation import SimulationContext
from teaching.repo_memory import MemoryPortalRepo
from teaching.services.results import (
    FORBIDDEN,
    NOT_FOUND,
    PERSISTENCE_FAILED,
    SIMULATION_ACTIVE,
    SaveResult,
)

logger = logging.getLogger("portal.web")

try:
    from teaching.repo_db import DBPortalRepo  # type: ignore
except Exception as exc:  # pragma: no cover - optional dependency
    DBPortalRepo = None  # type: ignore
    _DB_REPO_IMPORT_ERROR = exc
else:
    _DB_REPO_IMPORT_ERROR = None


def _build_default_repo():
    """Prefer the DB-backed repo; fall back to in-memory if unavailable."""
    if DBPortalRepo is None:
        if _DB_REPO_IMPORT_ERROR:
            logger.warning("Portal repo import failed: %s", _DB_REPO_IMPORT_ERROR)
        return MemoryPortalRepo()
    if not database_dsn():
        return MemoryPortalRepo()
    try:
        return DBPortalRepo()
    except Exception as exc:  # pragma: no cover - exercised when psycopg missing
        logger.warning("Portal repo unavailable (%s); using in-memory fallback", exc)
        return MemoryPortalRepo()


_REPO = None


def _get_repo():
    """Lazy repo accessor to avoid import-time DB checks in tests."""
    global _REPO
    if _REPO is None:
        _REPO = _build_default_repo()
    return _REPO


def set_repo(repo) -> None:
    """Allow tests to swap the repository implementation."""
    global _REPO
    _REPO = repo


# --- Identity --------------------------------------------------------------------

@dataclass(frozen=True)
class Identity:
    real: Optional[User]
    viewer: Optional[User]
    simulation: Optional[SimulationContext]
    session_id: Optional[str]

    @property
    def simulating(self) -> bool:
        return self.simulation is not None


def _identity(request: Request) -> Identity:
    state = request.state
    real = getattr(state, "user", None)
    return Identity(
        real=real,
        viewer=getattr(state, "viewer", real),
        simulation=getattr(state, "simulation", None),
        session_id=getattr(state, "session_id", None),
    )


# --- Responses -------------------------------------------------------------------

def _json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _private_error(payload: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


_STATUS_BY_ERROR = {
    NOT_FOUND: 404,
    FORBIDDEN: 403,
    SIMULATION_ACTIVE: 403,
    PERSISTENCE_FAILED: 502,
    "password_change_failed": 502,
}


def _result_error(result: SaveResult) -> JSONResponse:
    """Map a failed SaveResult onto the JSON error contract."""
    code = result.error or "bad_request"
    status = _STATUS_BY_ERROR.get(code, 400)
    if status == 400:
        return _private_error({"error": "bad_request", "detail": code}, status_code=400)
    if status == 403:
        return _private_error({"error": "forbidden", "detail": code}, status_code=403)
    if status == 404:
        return _private_error({"error": "not_found"}, status_code=404)
    return _private_error({"error": code}, status_code=status)


def _bad_request(detail: str) -> JSONResponse:
    return _private_error({"error": "bad_request", "detail": detail}, status_code=400)


def _forbidden(detail: Optional[str] = None) -> JSONResponse:
    payload = {"error": "forbidden"}
    if detail:
        payload["detail"] = detail
    return _private_error(payload, status_code=403)


def _serialize_user(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
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
