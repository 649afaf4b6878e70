"""
Classroom/year visibility scope for portal content.

Why:
    Every content node (course, module, category, material) and every calendar
    event and sidebar link carries the same pair of optional restriction lists.
    Keeping the predicate and the normalization rule in one module ensures all
    editors and readers agree on what "unrestricted" means.

Semantics:
    - An empty list in a dimension means "all values" for that dimension.
    - A non-empty list restricts visibility to users whose attribute is listed.
    - Both dimensions combine with logical AND.
    - Selecting every member of an enumeration collapses to the empty list.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, TypeVar

CLASSROOMS: tuple[str, ...] = ("A", "B", "C", "D", "E")
SCHOOL_YEARS: tuple[int, ...] = (6, 7, 8, 9)


class Viewer(Protocol):
    role: str
    classroom: str
    year: int


@dataclass(frozen=True)
class Scope:
    classrooms: tuple[str, ...] = ()
    years: tuple[int, ...] = ()

    @property
    def unrestricted(self) -> bool:
        return not self.classrooms and not self.years


UNRESTRICTED = Scope()


def is_visible(scope: Optional[Scope], viewer: Optional[Viewer]) -> bool:
    """Return True when `viewer` may see an item tagged with `scope`.

    Teachers and anonymous/system contexts (viewer None) see everything.
    """
    if viewer is None or getattr(viewer, "role", None) != "student":
        return True
    if scope is None:
        return True
    classroom_ok = not scope.classrooms or viewer.classroom in scope.classrooms
    year_ok = not scope.years or viewer.year in scope.years
    return classroom_ok and year_ok


def _dedupe(values: Iterable[Any]) -> list:
    seen: list = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def normalize_classrooms(values: Optional[Iterable[Any]]) -> tuple[str, ...]:
    """Validate, dedupe and collapse a classroom selection.

    Raises ValueError("invalid_classroom") for values outside the enumeration.
    """
    items: List[str] = []
    for raw in values or ():
        value = str(raw).strip().upper()
        if value not in CLASSROOMS:
            raise ValueError("invalid_classroom")
        items.append(value)
    items = _dedupe(items)
    if len(items) == len(CLASSROOMS):
        return ()
    return tuple(items)


def normalize_years(values: Optional[Iterable[Any]]) -> tuple[int, ...]:
    """Validate, dedupe and collapse a school year selection.

    Raises ValueError("invalid_year") for values outside the enumeration.
    """
    items: List[int] = []
    for raw in values or ():
        if isinstance(raw, bool):
            raise ValueError("invalid_year")
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValueError("invalid_year") from None
        if value not in SCHOOL_YEARS:
            raise ValueError("invalid_year")
        items.append(value)
    items = _dedupe(items)
    if len(items) == len(SCHOOL_YEARS):
        return ()
    return tuple(items)


def make_scope(classrooms: Optional[Iterable[Any]] = None, years: Optional[Iterable[Any]] = None) -> Scope:
    return Scope(classrooms=normalize_classrooms(classrooms), years=normalize_years(years))


def toggle_classroom(selected: Sequence[str], classroom: str) -> tuple[str, ...]:
    """Selector behaviour: flip membership of `classroom`, then normalize."""
    current = list(normalize_classrooms(selected))
    value = str(classroom).strip().upper()
    if value in current:
        current.remove(value)
    else:
        current.append(value)
    return normalize_classrooms(current)


def toggle_year(selected: Sequence[int], year: int) -> tuple[int, ...]:
    current = list(normalize_years(selected))
    value = int(year)
    if value in current:
        current.remove(value)
    else:
        current.append(value)
    return normalize_years(current)


def scope_from_record(record: Mapping[str, Any] | None) -> Scope:
    """Read `classrooms`/`years` from a stored row or JSON node (None → empty)."""
    if not record:
        return UNRESTRICTED
    return make_scope(record.get("classrooms") or (), record.get("years") or ())


def scope_to_record(scope: Scope) -> dict:
    return {"classrooms": list(scope.classrooms), "years": list(scope.years)}


T = TypeVar("T")


def filter_visible(items: Iterable[T], viewer: Optional[Viewer]) -> list[T]:
    """Keep the items whose `.scope` passes `is_visible`, preserving order."""
    return [item for item in items if is_visible(getattr(item, "scope", None), viewer)]


__all__ = [
    "CLASSROOMS",
    "SCHOOL_YEARS",
    "Scope",
    "UNRESTRICTED",
    "is_visible",
    "normalize_classrooms",
    "normalize_years",
    "make_scope",
    "toggle_classroom",
    "toggle_year",
    "scope_from_record",
    "scope_to_record",
    "filter_visible",
]
