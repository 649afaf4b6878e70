"""
In-memory portal repository for tests and offline development.

Records are kept in dicts keyed by id, plus the creation order per entity so
listings follow the same ordering as the Postgres repository.
"""
from __future__ import annotations

from dataclasses import fields as dataclass_fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from identity_access.domain import User
from teaching.models import CalendarEvent, Course, SidebarLink
from teaching.scope import Scope
from teaching.tree import ContentTree


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_fields(record_type: type, values: Dict[str, Any]) -> None:
    allowed = {f.name for f in dataclass_fields(record_type)} - {"id"}
    if set(values) - allowed:
        raise ValueError("invalid_field")


class MemoryPortalRepo:
    def __init__(self) -> None:
        self.profiles: Dict[str, User] = {}
        self.courses: Dict[str, Course] = {}
        self.course_order: List[str] = []
        self.links: Dict[str, SidebarLink] = {}
        self.link_order: List[str] = []
        self.events: Dict[str, CalendarEvent] = {}
        self.event_order: List[str] = []

    # --- Profiles -----------------------------------------------------------------
    def list_profiles(self) -> List[User]:
        return sorted(self.profiles.values(), key=lambda u: (u.name.lower(), u.id))

    def get_profile(self, user_id: str) -> Optional[User]:
        return self.profiles.get(user_id)

    def create_profile(self, user: User) -> User:
        if not user.id:
            user = replace(user, id=str(uuid4()))
        self.profiles[user.id] = user
        return user

    def update_profile(self, user_id: str, **fields: Any) -> Optional[User]:
        _check_fields(User, fields)
        current = self.profiles.get(user_id)
        if current is None:
            return None
        updated = replace(current, **fields)
        self.profiles[user_id] = updated
        return updated

    def delete_profile(self, user_id: str) -> bool:
        return self.profiles.pop(user_id, None) is not None

    # --- Courses ------------------------------------------------------------------
    def list_courses(self) -> List[Course]:
        return [self.courses[cid] for cid in reversed(self.course_order) if cid in self.courses]

    def get_course(self, course_id: str) -> Optional[Course]:
        return self.courses.get(course_id)

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
        course = Course(
            id=str(uuid4()),
            title=title,
            teacher_id=teacher_id,
            teacher_name=teacher_name,
            content=content,
            status=status,
            progress=progress,
            image_url=image_url,
            icon=icon,
            scope=scope,
            created_at=_now_iso(),
        )
        self.courses[course.id] = course
        self.course_order.append(course.id)
        return course

    def update_course(self, course_id: str, **fields: Any) -> Optional[Course]:
        _check_fields(Course, fields)
        current = self.courses.get(course_id)
        if current is None:
            return None
        updated = replace(current, **fields)
        self.courses[course_id] = updated
        return updated

    def delete_course(self, course_id: str) -> bool:
        if self.courses.pop(course_id, None) is None:
            return False
        self.course_order.remove(course_id)
        return True

    # --- Sidebar links ------------------------------------------------------------
    def list_links(self) -> List[SidebarLink]:
        return [self.links[lid] for lid in self.link_order if lid in self.links]

    def get_link(self, link_id: str) -> Optional[SidebarLink]:
        return self.links.get(link_id)

    def create_link(self, *, text: str, url: str, scope: Scope) -> SidebarLink:
        link = SidebarLink(id=str(uuid4()), text=text, url=url, scope=scope)
        self.links[link.id] = link
        self.link_order.append(link.id)
        return link

    def update_link(self, link_id: str, **fields: Any) -> Optional[SidebarLink]:
        _check_fields(SidebarLink, fields)
        current = self.links.get(link_id)
        if current is None:
            return None
        updated = replace(current, **fields)
        self.links[link_id] = updated
        return updated

    def delete_link(self, link_id: str) -> bool:
        if self.links.pop(link_id, None) is None:
            return False
        self.link_order.remove(link_id)
        return True

    # --- Calendar events ----------------------------------------------------------
    def list_events(self) -> List[CalendarEvent]:
        ordered = [self.events[eid] for eid in self.event_order if eid in self.events]
        return sorted(ordered, key=lambda e: e.date)

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        return self.events.get(event_id)

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
        event = CalendarEvent(
            id=str(uuid4()),
            title=title,
            date=date,
            description=description,
            course_id=course_id,
            color=color,
            scope=scope,
        )
        self.events[event.id] = event
        self.event_order.append(event.id)
        return event

    def update_event(self, event_id: str, **fields: Any) -> Optional[CalendarEvent]:
        _check_fields(CalendarEvent, fields)
        current = self.events.get(event_id)
        if current is None:
            return None
        updated = replace(current, **fields)
        self.events[event_id] = updated
        return updated

    def delete_event(self, event_id: str) -> bool:
        if self.events.pop(event_id, None) is None:
            return False
        self.event_order.remove(event_id)
        return True


__all__ = ["MemoryPortalRepo"]
