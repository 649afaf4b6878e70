"""
Teaching API routes: courses and their content tree.

Why:
    Teachers create courses and edit modules, categories and materials one node
    at a time; students (and teachers simulating a student) read a course
    filtered to their classroom/year. The adapter enforces authentication
    (middleware), maps request bodies to the content service and maps
    `SaveResult` failures to HTTP errors.

Notes:
    - Ownership and edit rights use the real identity; visibility uses the
      viewing identity (which differs only while simulating).
    - Every response is user-scoped and sent with `Cache-Control: private, no-store`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Request
from pydantic import BaseModel

from teaching.files import MaterialFileSettings, file_to_data_url
from teaching.models import Course
from teaching.projection import is_course_owner_view
from teaching.scope import is_visible, scope_to_record
from teaching.services.content import ContentChange, CourseContentService
from teaching.tree import ContentTree
from .common import (
    _bad_request,
    _get_repo,
    _identity,
    _json_private,
    _private_error,
    _result_error,
)
from .security import _csrf_guard

teaching_router = APIRouter(tags=["Teaching"])  # explicit paths below
logger = logging.getLogger("portal.web.teaching")

MATERIAL_FILE_SETTINGS = MaterialFileSettings.from_env()


def _get_content_service() -> CourseContentService:
    return CourseContentService(_get_repo())


# --- Request models --------------------------------------------------------------

class CourseCreate(BaseModel):
    # Accept loose values and validate in the service to return 400 (not 422)
    title: Any = None
    image_url: Any = None
    icon: Optional[str] = ""
    status: Optional[str] = None
    progress: Any = 0
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


class CourseUpdate(BaseModel):
    title: Any = None
    image_url: Any = None
    icon: Optional[str] = None
    status: Optional[str] = None
    progress: Any = None
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


class GroupNodeCreate(BaseModel):
    title: Any = None
    illustration_url: Optional[str] = ""
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


class MaterialCreate(BaseModel):
    title: Any = None
    kind: str = "link"
    content: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    classrooms: Optional[List[Any]] = None
    years: Optional[List[Any]] = None


# --- Serialization ---------------------------------------------------------------

def _serialize_content(tree: ContentTree) -> List[dict]:
    return tree.to_content()


def _serialize_course(course: Course, *, can_edit: Optional[bool] = None, with_content: bool = True) -> dict:
    out: Dict[str, Any] = {
        "id": course.id,
        "title": course.title,
        "teacher_id": course.teacher_id,
        "teacher_name": course.teacher_name,
        "status": course.status,
        "progress": course.progress,
        "image_url": course.image_url,
        "icon": course.icon,
        **scope_to_record(course.scope),
        "created_at": course.created_at,
    }
    if with_content:
        out["content"] = _serialize_content(course.content)
    if can_edit is not None:
        out["can_edit"] = can_edit
    return out


def _serialize_change(change: ContentChange, status_code: int = 200):
    body = {"node_id": change.node_id, "course": _serialize_course(change.course, can_edit=True)}
    return _json_private(body, status_code=status_code)


def _split_list(raw: Any) -> Optional[List[str]]:
    """Form fields carry lists as repeated keys or a comma-separated string."""
    if raw is None:
        return None
    values: List[str] = []
    for item in raw if isinstance(raw, list) else [raw]:
        values.extend(part.strip() for part in str(item).split(",") if part.strip())
    return values


# --- Courses ---------------------------------------------------------------------

@teaching_router.get("/api/courses")
async def list_courses(request: Request, q: str = ""):
    """
    Dashboard list for the current identity.

    Behavior:
        - Teachers (not simulating): owned courses.
        - Students and simulated students: courses visible for classroom/year.
        - `q` filters by case-insensitive title substring.
    """
    ident = _identity(request)
    items = _get_content_service().list_courses(ident.real, ident.viewer, q)
    return _json_private([_serialize_course(c, with_content=False) for c in items])


@teaching_router.post("/api/courses")
async def create_course(request: Request, payload: CourseCreate):
    """Create a new course (teacher only, owner becomes the caller)."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = _get_content_service().create_course(
        ident.real,
        title=payload.title,
        image_url=payload.image_url,
        icon=payload.icon or "",
        status=payload.status,
        progress=payload.progress if payload.progress is not None else 0,
        classrooms=payload.classrooms,
        years=payload.years,
        simulating=ident.simulating,
    )
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_course(result.value, can_edit=True), status_code=201)


@teaching_router.get("/api/courses/{course_id}")
async def get_course(request: Request, course_id: str):
    """Course detail projected for the viewing identity.

    Behavior:
        - 200 with the course; students only see visible modules, categories
          and materials. `can_edit` is true only for the owning teacher outside
          simulation.
        - 404 when the course does not exist or is not visible to a student.
    """
    ident = _identity(request)
    service = _get_content_service()
    course = service.get_course_for_viewer(course_id, ident.viewer)
    if course is None:
        return _private_error({"error": "not_found"}, status_code=404)
    owner_view = is_course_owner_view(course, ident.real, ident.simulation)
    if not owner_view and not is_visible(course.scope, ident.viewer):
        return _private_error({"error": "not_found"}, status_code=404)
    return _json_private(_serialize_course(course, can_edit=owner_view))


@teaching_router.patch("/api/courses/{course_id}")
async def update_course(request: Request, course_id: str, payload: CourseUpdate):
    """Partial update (owner only). Omitted fields remain unchanged."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    result = _get_content_service().update_course(ident.real, course_id, simulating=ident.simulating, **changes)
    if not result.ok:
        return _result_error(result)
    return _json_private(_serialize_course(result.value, can_edit=True))


@teaching_router.delete("/api/courses/{course_id}")
async def delete_course(request: Request, course_id: str):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = _get_content_service().delete_course(ident.real, course_id, simulating=ident.simulating)
    if not result.ok:
        return _result_error(result)
    return _json_private({"deleted": course_id})


# --- Content tree ----------------------------------------------------------------

def _node_payload(model: BaseModel) -> Dict[str, Any]:
    data = model.model_dump()
    for key in ("classrooms", "years"):
        if data.get(key) is None:
            data.pop(key, None)
    return data


@teaching_router.post("/api/courses/{course_id}/modules")
async def create_module(request: Request, course_id: str, payload: GroupNodeCreate):
    """Append a module to the course (owner only)."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = _get_content_service().add_module(
        ident.real, course_id, simulating=ident.simulating, **_node_payload(payload)
    )
    if not result.ok:
        return _result_error(result)
    return _serialize_change(result.value, status_code=201)


@teaching_router.post("/api/courses/{course_id}/modules/{module_id}/categories")
async def create_category(request: Request, course_id: str, module_id: str, payload: GroupNodeCreate):
    """Append a category to a module (owner only); unknown module → 404."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = _get_content_service().add_category(
        ident.real, course_id, module_id, simulating=ident.simulating, **_node_payload(payload)
    )
    if not result.ok:
        return _result_error(result)
    return _serialize_change(result.value, status_code=201)


@teaching_router.post("/api/courses/{course_id}/categories/{category_id}/materials")
async def create_material(request: Request, course_id: str, category_id: str, payload: MaterialCreate):
    """Append a link material (URL) or a file material given as data URL."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    data = _node_payload(payload)
    data["content"] = data.get("content") or ""
    result = _get_content_service().add_material(
        ident.real, course_id, category_id, simulating=ident.simulating, **data
    )
    if not result.ok:
        return _result_error(result)
    return _serialize_change(result.value, status_code=201)


@teaching_router.post("/api/courses/{course_id}/categories/{category_id}/materials/upload")
async def upload_material(request: Request, course_id: str, category_id: str):
    """Create a file material from a multipart upload.

    Form fields: `title`, `file`, optional `classrooms`/`years` (repeated or
    comma-separated). The file is stored inline as a data URL; payloads above
    the configured limit yield 400 `file_too_large`.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    form = await request.form()
    upload = form.get("file")
    if upload is None or not hasattr(upload, "read"):
        return _bad_request("missing_file")
    data = await upload.read()
    try:
        encoded = file_to_data_url(
            data,
            getattr(upload, "content_type", "") or "",
            getattr(upload, "filename", "") or "",
            MATERIAL_FILE_SETTINGS,
        )
    except ValueError as exc:
        return _bad_request(str(exc))
    payload: Dict[str, Any] = {
        "title": form.get("title"),
        "kind": "file",
        "content": encoded.content,
        "file_name": encoded.file_name,
        "file_type": encoded.file_type,
    }
    classrooms = _split_list(form.getlist("classrooms") or None)
    years = _split_list(form.getlist("years") or None)
    if classrooms is not None:
        payload["classrooms"] = classrooms
    if years is not None:
        payload["years"] = years
    result = _get_content_service().add_material(
        ident.real, course_id, category_id, simulating=ident.simulating, **payload
    )
    if not result.ok:
        return _result_error(result)
    logger.info("File material uploaded course=%s size=%s", course_id, len(data))
    return _serialize_change(result.value, status_code=201)


@teaching_router.patch("/api/courses/{course_id}/nodes/{node_id}")
async def update_node(request: Request, course_id: str, node_id: str, changes: Dict[str, Any] = Body(...)):
    """Replace the given fields of a module, category or material.

    Unknown fields → 400 `invalid_field`; unknown node → 404. A file material
    edited without new content keeps its stored file.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    if "content" in changes and not changes.get("content"):
        changes = {k: v for k, v in changes.items() if k != "content"}
    result = _get_content_service().update_node(
        ident.real, course_id, node_id, changes, simulating=ident.simulating
    )
    if not result.ok:
        return _result_error(result)
    return _serialize_change(result.value)


@teaching_router.delete("/api/courses/{course_id}/nodes/{node_id}")
async def delete_node(request: Request, course_id: str, node_id: str):
    """Remove a node together with its subtree."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    ident = _identity(request)
    result = _get_content_service().remove_node(ident.real, course_id, node_id, simulating=ident.simulating)
    if not result.ok:
        return _result_error(result)
    return _serialize_change(result.value)
