"""
Postgres repo helpers (no running database required).

Validates DSN resolution, column translation and the repo selection fallback.
"""
from __future__ import annotations

import pytest

from teaching.scope import Scope
from teaching.tree import EMPTY_TREE


def _repo_db():
    try:
        import psycopg  # type: ignore  # noqa: F401
    except Exception:
        pytest.skip("psycopg not available")
    from teaching import repo_db  # type: ignore

    return repo_db


def test_repo_requires_dsn(monkeypatch: pytest.MonkeyPatch):
    repo_db = _repo_db()
    monkeypatch.delenv("PORTAL_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        repo_db.DBPortalRepo()


def test_repo_prefers_portal_dsn(monkeypatch: pytest.MonkeyPatch):
    repo_db = _repo_db()
    monkeypatch.setenv("DATABASE_URL", "postgresql://fallback@localhost/db")
    monkeypatch.setenv("PORTAL_DATABASE_URL", "postgresql://portal@localhost/db")
    assert repo_db.DBPortalRepo()._dsn == "postgresql://portal@localhost/db"


def test_domain_fields_translate_to_columns():
    repo_db = _repo_db()
    cols = repo_db._to_columns({"title": "X", "scope": Scope(("A",), (7,)), "content": EMPTY_TREE})
    assert cols["title"] == "X"
    assert cols["classrooms"] == ["A"] and cols["years"] == [7]
    assert cols["content"].obj == []
    with pytest.raises(ValueError):
        repo_db._to_columns({"id": "other"})


def test_select_list_casts_ids_and_formats_dates():
    repo_db = _repo_db()
    select = repo_db._select_list(("id", "course_id", "date", "title"))
    assert select.startswith("id::text, course_id::text, to_char(date, 'YYYY-MM-DD')")
    assert select.endswith(", title")


def test_web_layer_falls_back_to_memory_without_dsn(monkeypatch: pytest.MonkeyPatch):
    import routes.common as common  # type: ignore
    from teaching.repo_memory import MemoryPortalRepo

    monkeypatch.delenv("PORTAL_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert isinstance(common._build_default_repo(), MemoryPortalRepo)
