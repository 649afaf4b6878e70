"""
Postgres-backed portal repository (Supabase database).

Tables:
- `public.profiles`         one row per user, ordered by name
- `public.courses`          course metadata plus the whole content tree in a jsonb `content` column
- `public.sidebar_links`    ordered by creation
- `public.calendar_events`  ordered by date

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Rows are mapped to plain dicts first, then to the domain records, so the
  service layer never sees driver types.
- Content edits replace the full `content` value; there are no per-node rows.
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

try:
    import psycopg
    from psycopg import sql
    from psycopg.types.json import Jsonb
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    Jsonb = None  # type: ignore
    HAVE_PSYCOPG = False

from identity_access.domain import User, user_from_record
from teaching.models import (
    CalendarEvent,
    Course,
    SidebarLink,
    course_from_record,
    event_from_record,
    link_from_record,
)
from teaching.scope import Scope
from teaching.tree import ContentTree


def _dsn() -> str:
    for candidate in (os.getenv("PORTAL_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for DBPortalRepo")


_TS = "to_char({col} at time zone 'utc', 'YYYY-MM-DD\"T\"HH24:MI:SS\"+00:00\"')"

_PROFILE_COLUMNS = ("id", "name", "email", "role", "is_active", "classroom", "year", "profile_picture_url")
_COURSE_COLUMNS = (
    "id",
    "title",
    "teacher_id",
    "teacher_name",
    "content",
    "status",
    "progress",
    "image_url",
    "icon",
    "classrooms",
    "years",
    "created_at",
)
_LINK_COLUMNS = ("id", "text", "url", "classrooms", "years")
_EVENT_COLUMNS = ("id", "title", "date", "description", "course_id", "color", "classrooms", "years")


def _select_list(columns: Sequence[str]) -> str:
    parts = []
    for col in columns:
        if col == "id" or col.endswith("_id"):
            parts.append(f"{col}::text")
        elif col == "created_at":
            parts.append(_TS.format(col=col))
        elif col == "date":
            parts.append("to_char(date, 'YYYY-MM-DD')")
        else:
            parts.append(col)
    return ", ".join(parts)


def _row_to_dict(columns: Sequence[str], row: Tuple) -> Dict[str, Any]:
    return {col: row[idx] for idx, col in enumerate(columns)}


def _scope_columns(scope: Scope) -> Dict[str, Any]:
    return {"classrooms": list(scope.classrooms), "years": list(scope.years)}


def _to_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate domain field names/values into column assignments."""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "scope":
            out.update(_scope_columns(value))
        elif key == "content":
            tree = value if isinstance(value, ContentTree) else ContentTree.from_content(value)
            out["content"] = Jsonb(tree.to_content())
        elif key in ("id", "created_at"):
            raise ValueError("invalid_field")
        else:
            out[key] = value
    return out


class DBPortalRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize the repository; no connection is opened eagerly."""
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBPortalRepo")
        self._dsn = dsn or _dsn()

    # --- Generic helpers ----------------------------------------------------------
    def _fetch_all(self, table: str, columns: Sequence[str], order_by: str) -> List[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_select_list(columns)} from public.{table} order by {order_by}")
                rows = cur.fetchall() or []
        return [_row_to_dict(columns, r) for r in rows]

    def _fetch_one(self, table: str, columns: Sequence[str], row_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_select_list(columns)} from public.{table} where id = %s", (row_id,))
                row = cur.fetchone()
        return _row_to_dict(columns, row) if row else None

    def _insert(self, table: str, columns: Sequence[str], values: Dict[str, Any]) -> Dict[str, Any]:
        names = list(values.keys())
        stmt = sql.SQL("insert into {table} ({cols}) values ({vals}) returning {ret}").format(
            table=sql.Identifier("public", table),
            cols=sql.SQL(", ").join(sql.Identifier(n) for n in names),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in names),
            ret=sql.SQL(_select_list(columns)),
        )
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, [values[n] for n in names])
                row = cur.fetchone()
                conn.commit()
        return _row_to_dict(columns, row)

    def _update(self, table: str, columns: Sequence[str], row_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not values:
            return self._fetch_one(table, columns, row_id)
        unknown = set(values) - set(columns)
        if unknown:
            raise ValueError("invalid_field")
        assignments = [sql.SQL("{} = %s").format(sql.Identifier(col)) for col in values]
        stmt = sql.SQL("update {table} set {assign} where id = %s returning {ret}").format(
            table=sql.Identifier("public", table),
            assign=sql.SQL(", ").join(assignments),
            ret=sql.SQL(_select_list(columns)),
        )
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, [*values.values(), row_id])
                row = cur.fetchone()
                if not row:
                    return None
                conn.commit()
        return _row_to_dict(columns, row)

    def _delete(self, table: str, row_id: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"delete from public.{table} where id = %s", (row_id,))
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    # --- Profiles -----------------------------------------------------------------
    def list_profiles(self) -> List[User]:
        return [user_from_record(r) for r in self._fetch_all("profiles", _PROFILE_COLUMNS, "name, id")]

    def get_profile(self, user_id: str) -> Optional[User]:
        row = self._fetch_one("profiles", _PROFILE_COLUMNS, user_id)
        return user_from_record(row) if row else None

    def create_profile(self, user: User) -> User:
        values = {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "is_active": user.is_active,
            "classroom": user.classroom,
            "year": user.year,
            "profile_picture_url": user.profile_picture_url,
        }
        if not user.id:
            values.pop("id")
        return user_from_record(self._insert("profiles", _PROFILE_COLUMNS, values))

    def update_profile(self, user_id: str, **fields: Any) -> Optional[User]:
        row = self._update("profiles", _PROFILE_COLUMNS, user_id, _to_columns(fields))
        return user_from_record(row) if row else None

    def delete_profile(self, user_id: str) -> bool:
        return self._delete("profiles", user_id)

    # --- Courses ------------------------------------------------------------------
    def list_courses(self) -> List[Course]:
        rows = self._fetch_all("courses", _COURSE_COLUMNS, "created_at desc, id")
        return [course_from_record(r) for r in rows]

    def get_course(self, course_id: str) -> Optional[Course]:
        row = self._fetch_one("courses", _COURSE_COLUMNS, course_id)
        return course_from_record(row) if row else None

    def create_course(
        self,
        *,
        title: str,
        teacher_id: str,
        teacher_name: str,
        image_url: str,
        icon: str,
        status: str,
        progress: int,
        scope: Scope,
        content: ContentTree,
    ) -> Course:
        values = {
            "title": title,
            "teacher_id": teacher_id,
            "teacher_name": teacher_name,
            "image_url": image_url,
            "icon": icon,
            "status": status,
            "progress": int(progress),
            "content": Jsonb(content.to_content()),
            **_scope_columns(scope),
        }
        return course_from_record(self._insert("courses", _COURSE_COLUMNS, values))

    def update_course(self, course_id: str, **fields: Any) -> Optional[Course]:
        row = self._update("courses", _COURSE_COLUMNS, course_id, _to_columns(fields))
        return course_from_record(row) if row else None

    def delete_course(self, course_id: str) -> bool:
        return self._delete("courses", course_id)

    # --- Sidebar links ------------------------------------------------------------
    def list_links(self) -> List[SidebarLink]:
        return [link_from_record(r) for r in self._fetch_all("sidebar_links", _LINK_COLUMNS, "created_at, id")]

    def get_link(self, link_id: str) -> Optional[SidebarLink]:
        row = self._fetch_one("sidebar_links", _LINK_COLUMNS, link_id)
        return link_from_record(row) if row else None

    def create_link(self, *, text: str, url: str, scope: Scope) -> SidebarLink:
        values = {"text": text, "url": url, **_scope_columns(scope)}
        return link_from_record(self._insert("sidebar_links", _LINK_COLUMNS, values))

    def update_link(self, link_id: str, **fields: Any) -> Optional[SidebarLink]:
        row = self._update("sidebar_links", _LINK_COLUMNS, link_id, _to_columns(fields))
        return link_from_record(row) if row else None

    def delete_link(self, link_id: str) -> bool:
        return self._delete("sidebar_links", link_id)

    # --- Calendar events ----------------------------------------------------------
    def list_events(self) -> List[CalendarEvent]:
        rows = self._fetch_all("calendar_events", _EVENT_COLUMNS, "date, created_at, id")
        return [event_from_record(r) for r in rows]

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        row = self._fetch_one("calendar_events", _EVENT_COLUMNS, event_id)
        return event_from_record(row) if row else None

    def create_event(
        self,
        *,
        title: str,
        date: str,
        description: str,
        course_id: Optional[str],
        color: str,
        scope: Scope,
    ) -> CalendarEvent:
        values = {
            "title": title,
            "date": date,
            "description": description,
            "course_id": course_id,
            "color": color,
            **_scope_columns(scope),
        }
        return event_from_record(self._insert("calendar_events", _EVENT_COLUMNS, values))

    def update_event(self, event_id: str, **fields: Any) -> Optional[CalendarEvent]:
        row = self._update("calendar_events", _EVENT_COLUMNS, event_id, _to_columns(fields))
        return event_from_record(row) if row else None

    def delete_event(self, event_id: str) -> bool:
        return self._delete("calendar_events", event_id)


__all__ = ["DBPortalRepo", "HAVE_PSYCOPG"]
