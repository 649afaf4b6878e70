"""
Student-view simulation: context validation, derived identity and store lifecycle.
"""
import pytest

from identity_access.domain import User
from identity_access.simulation import SimulationContext, SimulationStore, derive_viewing_identity

TEACHER = User(id="t1", name="Teo", email="t@school.example", role="teacher", classroom="C", year=9)


def test_build_validates_and_normalizes():
    ctx = SimulationContext.build("7", " b ")
    assert ctx == SimulationContext(year=7, classroom="B")
    assert ctx.to_dict() == {"year": 7, "classroom": "B"}


@pytest.mark.parametrize(
    "year, classroom, code",
    [
        (None, "A", "year_required"),
        ("", "A", "year_required"),
        (7, None, "classroom_required"),
        (7, " ", "classroom_required"),
        (5, "A", "invalid_year"),
        ("seven", "A", "invalid_year"),
        (7, "Z", "invalid_classroom"),
    ],
)
def test_build_rejects_incomplete_or_invalid_input(year, classroom, code):
    with pytest.raises(ValueError) as exc:
        SimulationContext.build(year, classroom)
    assert str(exc.value) == code


def test_viewing_identity_is_a_student_copy_and_real_user_untouched():
    viewer = derive_viewing_identity(TEACHER, SimulationContext(year=6, classroom="A"))
    assert viewer.role == "student" and viewer.year == 6 and viewer.classroom == "A"
    assert viewer.id == TEACHER.id
    assert TEACHER.role == "teacher" and TEACHER.year == 9 and TEACHER.classroom == "C"


def test_no_context_returns_real_user():
    assert derive_viewing_identity(TEACHER, None) is TEACHER
    assert derive_viewing_identity(None, SimulationContext(year=6, classroom="A")) is None


def test_store_lifecycle_per_session():
    store = SimulationStore()
    ctx = SimulationContext(year=8, classroom="D")
    assert store.is_active("sid-1") is False
    store.start("sid-1", ctx, real_user=TEACHER)
    assert store.get("sid-1") == ctx
    assert store.get("sid-2") is None
    store.start("sid-1", SimulationContext(year=6, classroom="A"), real_user=TEACHER)
    assert store.get("sid-1").year == 6
    store.exit("sid-1")
    assert store.is_active("sid-1") is False
    store.exit("sid-1")  # idempotent


def test_store_refuses_students():
    student = User(id="s1", name="Ana", email="a@school.example")
    with pytest.raises(PermissionError):
        SimulationStore().start("sid", SimulationContext(year=6, classroom="A"), real_user=student)
