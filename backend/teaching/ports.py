"""Repository contract shared by the memory and Postgres implementations."""
from __future__ import annotations

from typing import Any, List, Optional, Protocol

from identity_access.domain import User
from teaching.models import CalendarEvent, Course, SidebarLink
from teaching.scope import Scope
from teaching.tree import ContentTree


class PortalRepoProtocol(Protocol):
    """Persistence for profiles, courses, sidebar links and calendar events.

    `update_*` methods take only the fields to change and return None for an
    unknown id; `delete_*` return False for an unknown id.
    """

    # Profiles
    def list_profiles(self) -> List[User]: ...

    def get_profile(self, user_id: str) -> Optional[User]: ...

    def create_profile(self, user: User) -> User: ...

    def update_profile(self, user_id: str, **fields: Any) -> Optional[User]: ...

    def delete_profile(self, user_id: str) -> bool: ...

    # Courses
    def list_courses(self) -> List[Course]: ...

    def get_course(self, course_id: str) -> Optional[Course]: ...

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
    ) -> Course: ...

    def update_course(self, course_id: str, **fields: Any) -> Optional[Course]: ...

    def delete_course(self, course_id: str) -> bool: ...

    # Sidebar links
    def list_links(self) -> List[SidebarLink]: ...

    def get_link(self, link_id: str) -> Optional[SidebarLink]: ...

    def create_link(self, *, text: str, url: str, scope: Scope) -> SidebarLink: ...

    def update_link(self, link_id: str, **fields: Any) -> Optional[SidebarLink]: ...

    def delete_link(self, link_id: str) -> bool: ...

    # Calendar events
    def list_events(self) -> List[CalendarEvent]: ...

    def get_event(self, event_id: str) -> Optional[CalendarEvent]: ...

    def create_event(
        self,
        *,
        title: str,
        date: str,
        description: str,
        course_id: Optional[str],
        color: str,
        scope: Scope,
    ) -> CalendarEvent: ...

    def update_event(self, event_id: str, **fields: Any) -> Optional[CalendarEvent]: ...

    def delete_event(self, event_id: str) -> bool: ...


__all__ = ["PortalRepoProtocol"]
