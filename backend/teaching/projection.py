"""
View-scoping projector: what a viewer may see of a course and of the course list.

Behavior:
    - Teachers (and a missing viewer) receive the course object unchanged.
    - Students receive a new course whose content keeps only visible modules,
      inside those only visible categories, inside those only visible materials.
      A hidden node takes its whole subtree with it.
    - The input course is never modified; the projection is a snapshot taken
      once per request.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional

from identity_access.domain import User
from identity_access.simulation import SimulationContext
from teaching.models import Course
from teaching.scope import Viewer, is_visible


def project_for_viewer(course: Course, viewer: Optional[Viewer]) -> Course:
    if viewer is None or getattr(viewer, "role", None) != "student":
        return course
    pruned = course.content.prune(lambda node: is_visible(node.scope, viewer))
    return replace(course, content=pruned)


def visible_courses(
    courses: Iterable[Course],
    real_user: Optional[User],
    viewing_user: Optional[User],
    query: str = "",
) -> List[Course]:
    """Dashboard list for the current identity, optionally filtered by title.

    A real teacher outside simulation lists the courses they own. Everyone
    else lists the courses visible to the viewing identity.
    """
    simulating = viewing_user is not None and not viewing_user.is_teacher
    if real_user is not None and real_user.is_teacher and not simulating:
        items = [c for c in courses if c.teacher_id == real_user.id]
    else:
        items = [c for c in courses if is_visible(c.scope, viewing_user)]
    needle = (query or "").strip().lower()
    if needle:
        items = [c for c in items if needle in c.title.lower()]
    return items


def is_course_owner_view(course: Course, real_user: Optional[User], simulation: Optional[SimulationContext]) -> bool:
    """Edit controls show only for the owning teacher outside simulation."""
    if real_user is None or simulation is not None:
        return False
    return real_user.is_teacher and course.teacher_id == real_user.id


__all__ = ["project_for_viewer", "visible_courses", "is_course_owner_view"]
