"Classroom portal"
from __future__ import annotations

import os
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from identity_access.simulation import SimulationStore, derive_viewing_identity
from identity_access.stores import SessionStore
import sys as _sys

try:
    from .auth_utils import session_cookie_opts
except ImportError:
    from auth_utils import session_cookie_opts

# Ensure legacy imports consistently reference the same module instance.
if __name__ == "main":
    _sys.modules.setdefault("backend.web.main", _sys.modules[__name__])
elif __name__ == "backend.web.main":
    _sys.modules["main"] = _sys.modules[__name__]


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via PORTAL_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in _sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("PORTAL_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


try:
    from dotenv import load_dotenv
    if _should_load_dotenv():
        load_dotenv()
except ImportError:
    pass

# Minimal production safety checks (fail-fast on insecure config)
# Support both "flat" (Docker image) and package (repo test) layouts.
try:
    import config as _cfg  # type: ignore
except ImportError:  # pragma: no cover
    from backend.web import config as _cfg  # type: ignore
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return _cfg.current_environment()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("portal.web")
SETTINGS = AuthSettings()
SESSION_COOKIE_NAME = "portal_session"
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "3600") or 3600)

SESSION_STORE = SessionStore()
SIMULATION_STORE = SimulationStore()

app = FastAPI(title="Classroom portal", description="Kursinhalte für Klassen und Jahrgänge", version="0.1.0")

from routes.auth import auth_router
from routes.calendar import calendar_router
from routes.common import _get_repo
from routes.links import links_router
from routes.simulation import simulation_router
from routes.teaching import teaching_router
from routes.users import users_router

# --- Optional Auth Admin Wiring (Supabase) -------------------------------------
try:
    from backend.web.auth_wiring import wire_supabase_auth_admin_if_configured as _wire_auth_admin  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - container fallback when package path is flattened
    from auth_wiring import wire_supabase_auth_admin_if_configured as _wire_auth_admin  # type: ignore

# Wire early; the profile route retries lazily when the first attempt fails.
_wire_auth_admin()

# --- Auth Helpers & Middleware --------------------------------------------------


def _cookie_opts(max_age: int | None = None) -> dict:
    return session_cookie_opts(SETTINGS.environment, max_age=max_age)


def _is_public_path(path: str) -> bool:
    return path.startswith("/auth/") or path in ("/health", "/favicon.ico", "/api/me")


def _unauthenticated() -> JSONResponse:
    headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
    return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    """Resolve the session into the real user, simulation and viewing identity.

    Downstream handlers read `request.state.user` (real identity),
    `request.state.viewer` (identity used for visibility), `request.state.simulation`
    and `request.state.session_id`.
    """
    path = request.url.path
    request.state.user = None
    request.state.viewer = None
    request.state.simulation = None
    request.state.session_id = None

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = SESSION_STORE.get(sid) if sid else None
    if sid and rec is None:
        # Expired or revoked session: drop any simulation left on it.
        SIMULATION_STORE.exit(sid)
    user = None
    if rec:
        try:
            user = _get_repo().get_profile(rec.user_id)
        except Exception as exc:
            logger.warning("Profile lookup failed: %s", exc.__class__.__name__)
            user = None
        if user is not None and not user.is_active:
            SIMULATION_STORE.exit(rec.session_id)
            SESSION_STORE.delete(rec.session_id)
            return JSONResponse(
                {"error": "forbidden", "detail": "account_inactive"},
                status_code=403,
                headers={"Cache-Control": "private, no-store"},
            )

    if user is None:
        if _is_public_path(path):
            return await call_next(request)
        return _unauthenticated()

    simulation = SIMULATION_STORE.get(rec.session_id)
    request.state.user = user
    request.state.simulation = simulation
    request.state.viewer = derive_viewing_identity(user, simulation)
    request.state.session_id = rec.session_id
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    # Material previews embed data: URLs (images, PDFs) and external links.
    csp = (
        "default-src 'self'; script-src 'self'; style-src 'self'; "
        "img-src 'self' data: https:; media-src 'self' data:; frame-src 'self' data:; "
        "font-src 'self' data:; connect-src 'self';"
    )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if SETTINGS.environment == "prod":
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Routers --------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(teaching_router)
app.include_router(links_router)
app.include_router(calendar_router)
app.include_router(users_router)
app.include_router(simulation_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
