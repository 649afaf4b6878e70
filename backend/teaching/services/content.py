"""
Course and course-content use cases.

Every write follows the same flow:
    load course → check the real identity owns it → apply a pure tree mutator
    → `not_found` when the mutator did not apply → replace the stored content
    → re-read → return the fresh course.

Repository exceptions never escape: they are logged and returned as
`SaveResult.failure("persistence_failed")` so callers can tell the user.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from identity_access.domain import User
from teaching.models import DEFAULT_COURSE_STATUS, Course
from teaching.ports import PortalRepoProtocol
from teaching.projection import project_for_viewer, visible_courses
from teaching.scope import make_scope, normalize_classrooms, normalize_years
from teaching.services.results import FORBIDDEN, NOT_FOUND, PERSISTENCE_FAILED, SaveResult, writer_error
from teaching.tree import EMPTY_TREE, ContentTree, TreeEdit, clean_title

logger = logging.getLogger("portal.teaching")

_COURSE_FIELDS = {"title", "image_url", "icon", "status", "progress", "classrooms", "years"}


@dataclass(frozen=True)
class ContentChange:
    course: Course
    node_id: Optional[str] = None


def _clean_image_url(value: Any) -> str:
    url = value.strip() if isinstance(value, str) else ""
    if not url:
        raise ValueError("invalid_image_url")
    return url


def _clean_progress(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("invalid_progress")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError("invalid_progress") from None
    if number < 0 or number > 100:
        raise ValueError("invalid_progress")
    return number


@dataclass
class CourseContentService:
    """Encapsulate course use cases independent of web adapters."""

    repo: PortalRepoProtocol

    # --- Reads --------------------------------------------------------------------
    def list_courses(self, real_user: Optional[User], viewing_user: Optional[User], query: str = "") -> List[Course]:
        return visible_courses(self.repo.list_courses(), real_user, viewing_user, query)

    def get_course_for_viewer(self, course_id: str, viewing_user: Optional[User]) -> Optional[Course]:
        course = self.repo.get_course(course_id)
        if course is None:
            return None
        return project_for_viewer(course, viewing_user)

    # --- Guards -------------------------------------------------------------------
    def _load_owned(self, actor: User, course_id: str):
        try:
            course = self.repo.get_course(course_id)
        except Exception as exc:
            logger.warning("Course load failed: %s", exc.__class__.__name__)
            return None, PERSISTENCE_FAILED
        if course is None:
            return None, NOT_FOUND
        if course.teacher_id != actor.id:
            return None, FORBIDDEN
        return course, None

    # --- Courses ------------------------------------------------------------------
    def create_course(
        self,
        actor: Optional[User],
        *,
        title: str,
        image_url: str,
        icon: str = "",
        status: Optional[str] = None,
        progress: Any = 0,
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
                image_url=_clean_image_url(image_url),
                icon=(icon or "").strip(),
                status=(status or "").strip() or DEFAULT_COURSE_STATUS,
                progress=_clean_progress(progress),
                scope=make_scope(classrooms, years),
            )
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        try:
            course = self.repo.create_course(
                teacher_id=actor.id,
                teacher_name=actor.name,
                content=EMPTY_TREE,
                **values,
            )
        except Exception as exc:
            logger.warning("Course create failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        logger.info("Course created id=%s", course.id)
        return SaveResult.success(course)

    def update_course(self, actor: Optional[User], course_id: str, *, simulating: bool = False, **changes: Any) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        if set(changes) - _COURSE_FIELDS:
            return SaveResult.failure("invalid_field")
        course, error = self._load_owned(actor, course_id)
        if error:
            return SaveResult.failure(error)
        fields: Dict[str, Any] = {}
        try:
            if "title" in changes:
                fields["title"] = clean_title(changes["title"])
            if "image_url" in changes:
                fields["image_url"] = _clean_image_url(changes["image_url"])
            if "icon" in changes:
                fields["icon"] = (changes["icon"] or "").strip()
            if "status" in changes:
                fields["status"] = (changes["status"] or "").strip() or DEFAULT_COURSE_STATUS
            if "progress" in changes:
                fields["progress"] = _clean_progress(changes["progress"])
            if "classrooms" in changes or "years" in changes:
                scope = course.scope
                classrooms = normalize_classrooms(changes["classrooms"]) if "classrooms" in changes else scope.classrooms
                years = normalize_years(changes["years"]) if "years" in changes else scope.years
                fields["scope"] = make_scope(classrooms, years)
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        return self._save(course_id, fields)

    def delete_course(self, actor: Optional[User], course_id: str, *, simulating: bool = False) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        _course, error = self._load_owned(actor, course_id)
        if error:
            return SaveResult.failure(error)
        try:
            deleted = self.repo.delete_course(course_id)
        except Exception as exc:
            logger.warning("Course delete failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if not deleted:
            return SaveResult.failure(NOT_FOUND)
        logger.info("Course deleted id=%s", course_id)
        return SaveResult.success(course_id)

    def _save(self, course_id: str, fields: Dict[str, Any]) -> SaveResult:
        try:
            updated = self.repo.update_course(course_id, **fields)
            fresh = self.repo.get_course(course_id) if updated is not None else None
        except Exception as exc:
            logger.warning("Course update failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if fresh is None:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(fresh)

    # --- Content tree -------------------------------------------------------------
    def _edit_content(
        self,
        actor: Optional[User],
        course_id: str,
        mutate: Callable[[ContentTree], TreeEdit],
        *,
        simulating: bool,
    ) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        course, error = self._load_owned(actor, course_id)
        if error:
            return SaveResult.failure(error)
        try:
            edit = mutate(course.content)
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        if not edit.applied:
            return SaveResult.failure(NOT_FOUND)
        saved = self._save(course_id, {"content": edit.tree})
        if not saved.ok:
            return saved
        return SaveResult.success(ContentChange(course=saved.value, node_id=edit.node_id))

    def add_module(self, actor: Optional[User], course_id: str, *, simulating: bool = False, **payload: Any) -> SaveResult:
        return self._edit_content(actor, course_id, lambda tree: tree.add_module(**payload), simulating=simulating)

    def add_category(
        self, actor: Optional[User], course_id: str, module_id: str, *, simulating: bool = False, **payload: Any
    ) -> SaveResult:
        return self._edit_content(
            actor, course_id, lambda tree: tree.add_category(module_id, **payload), simulating=simulating
        )

    def add_material(
        self, actor: Optional[User], course_id: str, category_id: str, *, simulating: bool = False, **payload: Any
    ) -> SaveResult:
        return self._edit_content(
            actor, course_id, lambda tree: tree.add_material(category_id, **payload), simulating=simulating
        )

    def update_node(
        self,
        actor: Optional[User],
        course_id: str,
        node_id: str,
        changes: Mapping[str, Any],
        *,
        simulating: bool = False,
    ) -> SaveResult:
        """Apply a free-form field mapping to one node; unknown keys are `invalid_field`."""
        return self._edit_content(
            actor, course_id, lambda tree: tree.update_node(node_id, changes), simulating=simulating
        )

    def remove_node(self, actor: Optional[User], course_id: str, node_id: str, *, simulating: bool = False) -> SaveResult:
        return self._edit_content(actor, course_id, lambda tree: tree.remove_node(node_id), simulating=simulating)


__all__ = ["CourseContentService", "ContentChange"]
