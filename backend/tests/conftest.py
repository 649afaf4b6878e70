"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
give every test a clean repository, session store and simulation store.
"""
import importlib
import os
import sys
from pathlib import Path

import pytest

# Ensure modules in backend/ and backend/web are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
WEB_DIR = BACKEND_DIR / "web"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(BACKEND_DIR), str(WEB_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Shared HS256 secret for access tokens minted in tests
TEST_JWT_SECRET = "test-only-jwt-secret-0123456789abcdef"
os.environ.setdefault("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Keep env-driven toggles deterministic per test.

    Individual tests opt into prod semantics or strict CSRF explicitly.
    """
    for var in (
        "PORTAL_ENV",
        "STRICT_CSRF",
        "PORTAL_TRUST_PROXY",
        "ALLOWED_REGISTRATION_DOMAINS",
        "PORTAL_DATABASE_URL",
        "DATABASE_URL",
        "SUPABASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    yield


@pytest.fixture(autouse=True)
def _reset_portal_repo():
    """Use a fresh in-memory repo for every test."""
    try:
        import routes.common as common  # type: ignore
        from teaching.repo_memory import MemoryPortalRepo  # type: ignore
    except Exception:
        yield
        return
    common.set_repo(MemoryPortalRepo())
    yield


@pytest.fixture(autouse=True)
def _reset_session_and_simulation_stores(monkeypatch: pytest.MonkeyPatch):
    """Reset SESSION_STORE and SIMULATION_STORE on both `main` aliases.

    Why:
        Tests may import the app as `main` or `backend.web.main`; a shared
        fresh instance avoids drift and cross-test leakage.
    """
    try:
        import main  # type: ignore
        from identity_access.simulation import SimulationStore  # type: ignore
        from identity_access.stores import SessionStore  # type: ignore
    except Exception:
        yield
        return

    shared_session = SessionStore()
    shared_simulation = SimulationStore()
    modules = [main]
    alias = sys.modules.get("backend.web.main")
    if alias is not None and alias is not main:
        modules.append(alias)
    for mod in modules:
        monkeypatch.setattr(mod, "SESSION_STORE", shared_session, raising=False)
        monkeypatch.setattr(mod, "SIMULATION_STORE", shared_simulation, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_auth_admin():
    """Drop any auth admin fake a test injected into the users routes."""
    yield
    try:
        users = importlib.import_module("routes.users")
        from identity_access.auth_admin import NullAuthAdmin  # type: ignore
    except Exception:
        return
    users.set_auth_admin(NullAuthAdmin())
