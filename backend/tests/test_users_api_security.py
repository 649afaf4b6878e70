"""
Users API: teacher roster management and self-service profile edits.
"""
from __future__ import annotations

import pytest
import httpx
from httpx import ASGITransport

import main  # type: ignore
import routes.users as users_routes  # type: ignore
from routes.common import _get_repo  # type: ignore
from utils.portal import WRITE_HEADERS, login, seed_user  # type: ignore


pytestmark = pytest.mark.anyio("asyncio")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


class _FakeAuthAdmin:
    def __init__(self):
        self.calls = []

    def update_password(self, user_id, new_password):
        self.calls.append((user_id, new_password))


async def test_users_list_requires_teacher():
    teacher = seed_user(role="teacher", name="Teo")
    student = seed_user(name="Ana")
    async with _client() as client:
        login(client, student)
        denied = await client.get("/api/users")
        client.cookies.clear()
        login(client, teacher)
        allowed = await client.get("/api/users")
    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert [u["name"] for u in allowed.json()] == ["Ana", "Teo"]
    assert "password" not in allowed.json()[0]


async def test_teacher_manages_students():
    teacher = seed_user(role="teacher")
    student = seed_user()
    other = seed_user()
    async with _client() as client:
        login(client, teacher)
        deactivated = await client.patch(
            f"/api/users/{student.id}", json={"is_active": False}, headers=WRITE_HEADERS
        )
        promoted = await client.patch(f"/api/users/{other.id}", json={"role": "teacher"}, headers=WRITE_HEADERS)
        deleted = await client.delete(f"/api/users/{student.id}", headers=WRITE_HEADERS)
        missing = await client.delete("/api/users/nobody", headers=WRITE_HEADERS)
    assert deactivated.status_code == 200 and deactivated.json()["is_active"] is False
    assert promoted.json()["role"] == "teacher"
    assert deleted.json() == {"deleted": student.id}
    assert _get_repo().get_profile(student.id) is None
    assert missing.status_code == 404


async def test_user_patch_rejects_other_shapes_and_targets():
    teacher = seed_user(role="teacher")
    colleague = seed_user(role="teacher")
    student = seed_user()
    async with _client() as client:
        login(client, teacher)
        demote = await client.patch(f"/api/users/{student.id}", json={"role": "admin"}, headers=WRITE_HEADERS)
        both = await client.patch(
            f"/api/users/{student.id}", json={"role": "teacher", "is_active": False}, headers=WRITE_HEADERS
        )
        on_teacher = await client.patch(
            f"/api/users/{colleague.id}", json={"is_active": False}, headers=WRITE_HEADERS
        )
        on_self = await client.delete(f"/api/users/{teacher.id}", headers=WRITE_HEADERS)
    assert demote.json() == {"error": "bad_request", "detail": "invalid_role"}
    assert both.json()["detail"] == "invalid_field"
    assert on_teacher.status_code == 403
    assert on_self.status_code == 403


async def test_user_management_blocked_while_simulating():
    teacher = seed_user(role="teacher")
    student = seed_user()
    async with _client() as client:
        login(client, teacher)
        await client.post("/api/simulation", json={"year": 6, "classroom": "A"}, headers=WRITE_HEADERS)
        r = await client.patch(f"/api/users/{student.id}", json={"is_active": False}, headers=WRITE_HEADERS)
    assert r.status_code == 403 and r.json()["detail"] == "simulation_active"


async def test_profile_update_for_own_account():
    student = seed_user(name="Ana", classroom="A", year=6)
    async with _client() as client:
        login(client, student)
        r = await client.patch(
            "/api/me/profile", json={"name": "Ana Souza", "classroom": "b", "year": 7}, headers=WRITE_HEADERS
        )
        bad = await client.patch("/api/me/profile", json={"year": 10}, headers=WRITE_HEADERS)
        me = await client.get("/api/me")
    assert r.status_code == 200
    assert r.json()["name"] == "Ana Souza" and r.json()["classroom"] == "B" and r.json()["year"] == 7
    assert bad.json() == {"error": "bad_request", "detail": "invalid_year"}
    assert me.json()["user"]["year"] == 7


async def test_password_change_goes_to_auth_admin():
    fake = _FakeAuthAdmin()
    users_routes.set_auth_admin(fake)
    student = seed_user()
    async with _client() as client:
        login(client, student)
        mismatch = await client.patch(
            "/api/me/profile",
            json={"new_password": "segredo1", "confirm_password": "segredo2"},
            headers=WRITE_HEADERS,
        )
        ok = await client.patch(
            "/api/me/profile",
            json={"new_password": "segredo1", "confirm_password": "segredo1"},
            headers=WRITE_HEADERS,
        )
    assert mismatch.json()["detail"] == "password_mismatch"
    assert ok.status_code == 200
    assert fake.calls == [(student.id, "segredo1")]


async def test_password_change_without_auth_admin_reports_failure(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    student = seed_user()
    async with _client() as client:
        login(client, student)
        r = await client.patch(
            "/api/me/profile",
            json={"new_password": "segredo1", "confirm_password": "segredo1"},
            headers=WRITE_HEADERS,
        )
    assert r.status_code == 502
    assert r.json() == {"error": "password_change_failed"}


async def test_deactivating_a_student_revokes_their_sessions():
    teacher = seed_user(role="teacher")
    student = seed_user()
    async with _client() as client:
        student_sid = login(client, student)
        before = await client.get("/api/courses")
        client.cookies.clear()
        login(client, teacher)
        await client.patch(f"/api/users/{student.id}", json={"is_active": False}, headers=WRITE_HEADERS)
        client.cookies.clear()
        client.cookies.set(main.SESSION_COOKIE_NAME, student_sid)
        after = await client.get("/api/courses")
    assert before.status_code == 200
    assert main.SESSION_STORE.get(student_sid) is None
    assert after.status_code == 401


async def test_deleting_a_student_revokes_their_sessions():
    teacher = seed_user(role="teacher")
    student = seed_user()
    async with _client() as client:
        student_sid = login(client, student)
        client.cookies.clear()
        login(client, teacher)
        deleted = await client.delete(f"/api/users/{student.id}", headers=WRITE_HEADERS)
    assert deleted.status_code == 200
    assert main.SESSION_STORE.get(student_sid) is None
