"""
Calendar API routes.

Why:
    The dashboard calendar shows teacher-created events filtered for the
    viewing identity. A month query groups events per day for the grid view;
    a day query lists the events of a single date.

Permissions:
    Reads: any authenticated user (filtered by classroom/year for students).
    Writes: teachers outside simulation.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Request
from pydantic import BaseModel

from teaching.models import DEFAULT_EVENT_COLOR, CalendarEvent
from teaching.scope import scope_to_record
from teaching.services.calendar import CalendarService, events_for_month, events_on
from .common import _bad_request, _get_repo, _identity, _json_private, _result_error
from .security import _csrf_guard

calendar_router = APIRouter(tags=["Calendar"])


class EventCreate(BaseModel):
    title: Any = None
    date: Any = None
    description: Optional[str] = ""
    course_id: Optional[str] = None
    color: Optional[str] = DEFAULT_EVENT_COLOR
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


class EventUpdate(BaseModel):
    title: Any = None
    date: Any = None
    description: Optional[str] = None
    course_id: Optional[str] = None
    color: Optional[str] = None
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


def _serialize_event(event: CalendarEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "title": event.title,
        "date": event.date,
        "description": event.description,
        "course_id": event.course_id,
        "color": event.color,
        **scope_to_record(event.scope),
    }


def _parse_month(raw: str) -> Optional[Tuple[int, int]]:
    parts = (raw or "").strip().split("-")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return None
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12:
        return None
    return year, month


@calendar_router.get("/api/events")
async def list_events(
    request: Request,
    month: Optional[str] = None,
    day: Optional[str] = None,
):
    """List visible events.

    Query:
        - `day=YYYY-MM-DD`: events of that date (list).
        - `month=YYYY-MM`: `{ "YYYY-MM-DD": [events...] }` for that month.
        - none: all visible events ordered by date.
    """
    ident = _identity(request)
    events = CalendarService(_get_repo()).list_for(ident.viewer)
    if day:
        return _json_private([_serialize_event(e) for e in events_on(events, day)])
    if month:
        parsed = _parse_month(month)
        if parsed is None:
            return _bad_request("invalid_month")
        grouped = events_for_month(events, *parsed)
        return _json_private({d: [_serialize_event(e) for e in items] for d, items in grouped.items()})
    return _json_private([_serialize_event(e) for e in events])


@calendar_router.post("/api/events")
async def create_event(request: Request, payload: EventCreate):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = CalendarService(_get_repo()).create_event(
        ident.real,
        title=payload.title,
        date=payload.date,
        description=payload.description or "",
        course_id=payload.course_id,
        color=payload.color or DEFAULT_EVENT_COLOR,
        classrooms=payload.classrooms,
        years=payload.years,
        simulating=ident.simulating,
    )
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_event(result.value), status_code=201)


@calendar_router.patch("/api/events/{event_id}")
async def update_event(request: Request, event_id: str, payload: EventUpdate):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    result = CalendarService(_get_repo()).update_event(ident.real, event_id, simulating=ident.simulating, **changes)
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_event(result.value))


@calendar_router.delete("/api/events/{event_id}")
async def delete_event(request: Request, event_id: str):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = CalendarService(_get_repo()).delete_event(ident.real, event_id, simulating=ident.simulating)
    if not result.ok:
        return _result_error(result)
    return _json_private({"deleted": event_id})
