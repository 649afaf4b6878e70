"""
Sidebar links API: teachers manage links, everyone reads the visible ones.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from teaching.models import SidebarLink
from teaching.scope import scope_to_record
from teaching.services.links import LinksService
from .common import _get_repo, _identity, _json_private, _result_error
from .security import _csrf_guard

links_router = APIRouter(tags=["Links"])


class LinkCreate(BaseModel):
    text: Any = None
    url: Any = None
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


class LinkUpdate(BaseModel):
    text: Any = None
    url: Any = None
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


def _serialize_link(link: SidebarLink) -> Dict[str, Any]:
    return {"id": link.id, "text": link.text, "url": link.url, **scope_to_record(link.scope)}


@links_router.get("/api/links")
async def list_links(request: Request):
    ident = _identity(request)
    items = LinksService(_get_repo()).list_for(ident.viewer)
    return _json_private([_serialize_link(link) for link in items])


@links_router.post("/api/links")
async def create_link(request: Request, payload: LinkCreate):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = LinksService(_get_repo()).create_link(
        ident.real,
        text=payload.text,
        url=payload.url,
        classrooms=payload.classrooms,
        years=payload.years,
        simulating=ident.simulating,
    )
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_link(result.value), status_code=201)


@links_router.patch("/api/links/{link_id}")
async def update_link(request: Request, link_id: str, payload: LinkUpdate):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    result = LinksService(_get_repo()).update_link(ident.real, link_id, simulating=ident.simulating, **changes)
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_link(result.value))


@links_router.delete("/api/links/{link_id}")
async def delete_link(request: Request, link_id: str):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = LinksService(_get_repo()).delete_link(ident.real, link_id, simulating=ident.simulating)
    if not result.ok:
        return _result_error(result)
    return _json_private({"deleted": link_id})
