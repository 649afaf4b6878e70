"""Portal records: courses, calendar events and sidebar links."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from teaching.scope import Scope, UNRESTRICTED, scope_from_record, scope_to_record
from teaching.tree import ContentTree, EMPTY_TREE

EVENT_COLORS = ("blue", "green", "purple", "red", "yellow", "pink")
DEFAULT_EVENT_COLOR = "blue"
DEFAULT_COURSE_STATUS = "not_started"


@dataclass(frozen=True)
class Course:
    id: str
    title: str
    teacher_id: str
    teacher_name: str = ""
    content: ContentTree = field(default=EMPTY_TREE)
    status: str = DEFAULT_COURSE_STATUS
    progress: int = 0
    image_url: str = ""
    icon: str = ""
    scope: Scope = UNRESTRICTED
    created_at: Optional[str] = None


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    date: str
    description: str = ""
    course_id: Optional[str] = None
    color: str = DEFAULT_EVENT_COLOR
    scope: Scope = UNRESTRICTED


@dataclass(frozen=True)
class SidebarLink:
    id: str
    text: str
    url: str
    scope: Scope = UNRESTRICTED


def _progress(value: Any) -> int:
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, number))


def course_from_record(record: Mapping[str, Any]) -> Course:
    return Course(
        id=str(record["id"]),
        title=str(record.get("title") or ""),
        teacher_id=str(record.get("teacher_id") or ""),
        teacher_name=str(record.get("teacher_name") or ""),
        content=ContentTree.from_content(record.get("content") or []),
        status=str(record.get("status") or DEFAULT_COURSE_STATUS),
        progress=_progress(record.get("progress")),
        image_url=str(record.get("image_url") or ""),
        icon=str(record.get("icon") or ""),
        scope=scope_from_record(record),
        created_at=record.get("created_at"),
    )


def course_to_record(course: Course) -> dict:
    return {
        "id": course.id,
        "title": course.title,
        "teacher_id": course.teacher_id,
        "teacher_name": course.teacher_name,
        "content": course.content.to_content(),
        "status": course.status,
        "progress": course.progress,
        "image_url": course.image_url,
        "icon": course.icon,
        **scope_to_record(course.scope),
        "created_at": course.created_at,
    }


def event_from_record(record: Mapping[str, Any]) -> CalendarEvent:
    color = str(record.get("color") or DEFAULT_EVENT_COLOR)
    return CalendarEvent(
        id=str(record["id"]),
        title=str(record.get("title") or ""),
        date=str(record.get("date") or "")[:10],
        description=str(record.get("description") or ""),
        course_id=record.get("course_id") or None,
        color=color if color in EVENT_COLORS else DEFAULT_EVENT_COLOR,
        scope=scope_from_record(record),
    )


def event_to_record(event: CalendarEvent) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "date": event.date,
        "description": event.description,
        "course_id": event.course_id,
        "color": event.color,
        **scope_to_record(event.scope),
    }


def link_from_record(record: Mapping[str, Any]) -> SidebarLink:
    return SidebarLink(
        id=str(record["id"]),
        text=str(record.get("text") or ""),
        url=str(record.get("url") or ""),
        scope=scope_from_record(record),
    )


def link_to_record(link: SidebarLink) -> dict:
    return {"id": link.id, "text": link.text, "url": link.url, **scope_to_record(link.scope)}


__all__ = [
    "EVENT_COLORS",
    "Course",
    "CalendarEvent",
    "SidebarLink",
    "course_from_record",
    "course_to_record",
    "event_from_record",
    "event_to_record",
    "link_from_record",
    "link_to_record",
]
