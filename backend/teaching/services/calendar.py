"""Calendar events: teacher-managed, filtered per viewer, grouped for month views."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Dict, Iterable, List, Optional

from identity_access.domain import User
from teaching.models import DEFAULT_EVENT_COLOR, EVENT_COLORS, CalendarEvent
from teaching.ports import PortalRepoProtocol
from teaching.scope import filter_visible, make_scope, normalize_classrooms, normalize_years
from teaching.services.results import NOT_FOUND, PERSISTENCE_FAILED, SaveResult, writer_error
from teaching.tree import clean_title

logger = logging.getLogger("portal.teaching")

_EVENT_FIELDS = {"title", "date", "description", "course_id", "color", "classrooms", "years"}


class _RepoUnavailable(Exception):
    pass


def _clean_date(value: Any) -> str:
    raw = value.strip() if isinstance(value, str) else ""
    if len(raw) != 10:
        raise ValueError("invalid_date")
    try:
        return date_type.fromisoformat(raw).isoformat()
    except ValueError:
        raise ValueError("invalid_date") from None


def _clean_color(value: Any) -> str:
    color = str(value or DEFAULT_EVENT_COLOR).strip().lower()
    if color not in EVENT_COLORS:
        raise ValueError("invalid_color")
    return color


def _clean_description(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def events_for_month(events: Iterable[CalendarEvent], year: int, month: int) -> Dict[str, List[CalendarEvent]]:
    """Group the events of one month by ISO day, days in ascending order."""
    prefix = f"{int(year):04d}-{int(month):02d}-"
    grouped: Dict[str, List[CalendarEvent]] = {}
    for event in sorted(events, key=lambda e: e.date):
        if event.date.startswith(prefix):
            grouped.setdefault(event.date, []).append(event)
    return grouped


def events_on(events: Iterable[CalendarEvent], day: str) -> List[CalendarEvent]:
    return [e for e in events if e.date == day]


@dataclass
class CalendarService:
    repo: PortalRepoProtocol

    def list_for(self, viewer: Optional[User]) -> List[CalendarEvent]:
        return filter_visible(self.repo.list_events(), viewer)

    def _clean_course_id(self, value: Any) -> Optional[str]:
        course_id = str(value).strip() if value else ""
        if not course_id:
            return None
        try:
            course = self.repo.get_course(course_id)
        except Exception as exc:
            logger.warning("Event course lookup failed: %s", exc.__class__.__name__)
            raise _RepoUnavailable() from exc
        if course is None:
            raise ValueError("invalid_course")
        return course_id

    def create_event(
        self,
        actor: Optional[User],
        *,
        title: Any,
        date: Any,
        description: Any = "",
        course_id: Optional[str] = None,
        color: str = DEFAULT_EVENT_COLOR,
        classrooms: Optional[Iterable[Any]] = None,
        years: Optional[Iterable[Any]] = None,
        simulating: bool = False,
    ) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        try:
            values = dict(
                title=clean_title(title),
                date=_clean_date(date),
                description=_clean_description(description),
                course_id=self._clean_course_id(course_id),
                color=_clean_color(color),
                scope=make_scope(classrooms, years),
            )
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        except _RepoUnavailable:
            return SaveResult.failure(PERSISTENCE_FAILED)
        try:
            event = self.repo.create_event(**values)
        except Exception as exc:
            logger.warning("Event create failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        return SaveResult.success(event)

    def update_event(self, actor: Optional[User], event_id: str, *, simulating: bool = False, **changes: Any) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        if set(changes) - _EVENT_FIELDS:
            return SaveResult.failure("invalid_field")
        try:
            current = self.repo.get_event(event_id)
        except Exception as exc:
            logger.warning("Event load failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if current is None:
            return SaveResult.failure(NOT_FOUND)
        fields: Dict[str, Any] = {}
        try:
            if "title" in changes:
                fields["title"] = clean_title(changes["title"])
            if "date" in changes:
                fields["date"] = _clean_date(changes["date"])
            if "description" in changes:
                fields["description"] = _clean_description(changes["description"])
            if "course_id" in changes:
                fields["course_id"] = self._clean_course_id(changes["course_id"])
            if "color" in changes:
                fields["color"] = _clean_color(changes["color"])
            if "classrooms" in changes or "years" in changes:
                classrooms = normalize_classrooms(changes["classrooms"]) if "classrooms" in changes else current.scope.classrooms
                years = normalize_years(changes["years"]) if "years" in changes else current.scope.years
                fields["scope"] = make_scope(classrooms, years)
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        except _RepoUnavailable:
            return SaveResult.failure(PERSISTENCE_FAILED)
        try:
            updated = self.repo.update_event(event_id, **fields)
        except Exception as exc:
            logger.warning("Event update failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if updated is None:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(updated)

    def delete_event(self, actor: Optional[User], event_id: str, *, simulating: bool = False) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        try:
            deleted = self.repo.delete_event(event_id)
        except Exception as exc:
            logger.warning("Event delete failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if not deleted:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(event_id)


__all__ = ["CalendarService", "events_for_month", "events_on"]
