"""
Visibility predicate and scope normalization.
"""
import pytest

from identity_access.domain import User
from teaching.scope import (
    CLASSROOMS,
    SCHOOL_YEARS,
    Scope,
    filter_visible,
    is_visible,
    make_scope,
    normalize_classrooms,
    normalize_years,
    scope_from_record,
    scope_to_record,
    toggle_classroom,
    toggle_year,
)


def _student(classroom="A", year=6):
    return User(id="s1", name="Ana", email="ana@school.example", role="student", classroom=classroom, year=year)


def _teacher():
    return User(id="t1", name="Teo", email="teo@school.example", role="teacher", classroom="A", year=6)


@pytest.mark.parametrize("classroom", CLASSROOMS)
@pytest.mark.parametrize("year", SCHOOL_YEARS)
def test_empty_scope_is_visible_to_every_student(classroom, year):
    assert is_visible(Scope(), _student(classroom, year)) is True


def test_classroom_and_year_combine_with_and():
    scope = Scope(classrooms=("A",), years=(7,))
    assert is_visible(scope, _student("A", 7)) is True
    assert is_visible(scope, _student("A", 6)) is False
    assert is_visible(scope, _student("B", 7)) is False


def test_single_dimension_restriction_leaves_other_open():
    scope = Scope(years=(8, 9))
    assert is_visible(scope, _student("E", 8)) is True
    assert is_visible(scope, _student("E", 7)) is False


def test_teachers_and_missing_viewer_see_everything():
    scope = Scope(classrooms=("C",), years=(9,))
    assert is_visible(scope, _teacher()) is True
    assert is_visible(scope, None) is True


def test_selecting_every_classroom_normalizes_to_empty():
    assert normalize_classrooms(["a", "B", "C", "D", "E"]) == ()
    assert normalize_years([6, 7, 8, 9, 9]) == ()


def test_normalize_dedupes_and_keeps_order():
    assert normalize_classrooms(["b", "A", "B"]) == ("B", "A")
    assert normalize_years(["7", 6, 7]) == (7, 6)


@pytest.mark.parametrize("bad", [["F"], ["AB"], [""]])
def test_invalid_classroom_rejected(bad):
    with pytest.raises(ValueError) as exc:
        normalize_classrooms(bad)
    assert str(exc.value) == "invalid_classroom"


@pytest.mark.parametrize("bad", [[5], [10], ["x"], [True]])
def test_invalid_year_rejected(bad):
    with pytest.raises(ValueError) as exc:
        normalize_years(bad)
    assert str(exc.value) == "invalid_year"


def test_toggle_adds_removes_and_collapses_full_selection():
    assert toggle_classroom([], "A") == ("A",)
    assert toggle_classroom(["A"], "A") == ()
    assert toggle_classroom(["A", "B", "C", "D"], "E") == ()
    assert toggle_year([6, 7, 8], 9) == ()
    assert toggle_year([6], 7) == (6, 7)


def test_scope_record_round_trip_and_missing_keys():
    scope = make_scope(["B"], [8])
    assert scope_to_record(scope) == {"classrooms": ["B"], "years": [8]}
    assert scope_from_record(scope_to_record(scope)) == scope
    assert scope_from_record(None).unrestricted
    assert scope_from_record({"title": "x"}).unrestricted


def test_filter_visible_preserves_order():
    class Item:
        def __init__(self, name, scope):
            self.name = name
            self.scope = scope

    items = [Item("all", Scope()), Item("b-only", Scope(classrooms=("B",))), Item("a7", Scope(("A",), (7,)))]
    assert [i.name for i in filter_visible(items, _student("A", 7))] == ["all", "a7"]
    assert [i.name for i in filter_visible(items, _teacher())] == ["all", "b-only", "a7"]
