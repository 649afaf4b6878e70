"""
View projection: identity for teachers, subtractive for students, dashboard listing.
"""
from identity_access.domain import User
from identity_access.simulation import SimulationContext, derive_viewing_identity
from teaching.models import Course
from teaching.projection import is_course_owner_view, project_for_viewer, visible_courses
from teaching.scope import Scope, is_visible
from teaching.tree import EMPTY_TREE

TEACHER = User(id="t1", name="Teo", email="t@school.example", role="teacher")
OTHER_TEACHER = User(id="t2", name="Tina", email="t2@school.example", role="teacher")


def _student(classroom="A", year=6):
    return User(id="s1", name="Ana", email="s@school.example", role="student", classroom=classroom, year=year)


def _course_with_content():
    tree = EMPTY_TREE
    open_module = tree.add_module(title="Aberto")
    tree = open_module.tree
    y7_module = tree.add_module(title="Só 7º ano", years=[7])
    tree = y7_module.tree
    cat = tree.add_category(open_module.node_id, title="Leituras")
    tree = cat.tree
    b_only = tree.add_material(cat.node_id, title="Turma B", kind="link", content="https://b", classrooms=["B"])
    tree = b_only.tree
    everyone = tree.add_material(cat.node_id, title="Todos", kind="link", content="https://all")
    tree = everyone.tree
    course = Course(id="c1", title="Matemática", teacher_id=TEACHER.id, teacher_name=TEACHER.name, content=tree)
    ids = {
        "open": open_module.node_id,
        "y7": y7_module.node_id,
        "cat": cat.node_id,
        "b_only": b_only.node_id,
        "everyone": everyone.node_id,
    }
    return course, ids


def test_projection_is_identity_for_teachers():
    course, _ = _course_with_content()
    assert project_for_viewer(course, TEACHER) is course
    assert project_for_viewer(course, None) is course


def test_projection_only_removes_invisible_nodes():
    course, ids = _course_with_content()
    student = _student("A", 6)
    projected = project_for_viewer(course, student)
    assert projected.content.module_ids() == (ids["open"],)
    assert projected.content.material_ids(ids["cat"]) == (ids["everyone"],)
    for node in projected.content.nodes.values():
        assert is_visible(node.scope, student)
        assert course.content.node(node.id) == node
    assert len(projected.content.nodes) < len(course.content.nodes)


def test_year_scoped_module_visible_only_for_that_year():
    course, ids = _course_with_content()
    seventh = project_for_viewer(course, _student("B", 7))
    assert ids["y7"] in seventh.content.module_ids()
    assert ids["b_only"] in seventh.content.material_ids(ids["cat"])
    sixth = project_for_viewer(course, _student("B", 6))
    assert ids["y7"] not in sixth.content.module_ids()


def test_visible_courses_teacher_lists_own_courses():
    own = Course(id="c1", title="Mine", teacher_id=TEACHER.id, teacher_name="Teo")
    other = Course(id="c2", title="Theirs", teacher_id=OTHER_TEACHER.id, teacher_name="Tina")
    assert [c.id for c in visible_courses([own, other], TEACHER, TEACHER)] == ["c1"]


def test_visible_courses_student_and_query_filter():
    c_all = Course(id="c1", title="Português", teacher_id="t1", teacher_name="Teo")
    c_b = Course(id="c2", title="Português avançado", teacher_id="t1", teacher_name="Teo", scope=Scope(classrooms=("B",)))
    c_9 = Course(id="c3", title="Química", teacher_id="t1", teacher_name="Teo", scope=Scope(years=(9,)))
    student = _student("B", 6)
    assert [c.id for c in visible_courses([c_all, c_b, c_9], student, student)] == ["c1", "c2"]
    assert [c.id for c in visible_courses([c_all, c_b, c_9], student, student, "  AVANÇ ")] == ["c2"]


def test_simulating_teacher_lists_courses_visible_to_simulated_student():
    own_9 = Course(id="c1", title="Nono", teacher_id=TEACHER.id, teacher_name="Teo", scope=Scope(years=(9,)))
    foreign_6 = Course(id="c2", title="Sexto", teacher_id=OTHER_TEACHER.id, teacher_name="Tina", scope=Scope(years=(6,)))
    viewer = derive_viewing_identity(TEACHER, SimulationContext(year=6, classroom="A"))
    assert [c.id for c in visible_courses([own_9, foreign_6], TEACHER, viewer)] == ["c2"]


def test_edit_controls_hidden_while_simulating_even_for_owner():
    course, _ = _course_with_content()
    assert is_course_owner_view(course, TEACHER, None) is True
    assert is_course_owner_view(course, TEACHER, SimulationContext(year=6, classroom="A")) is False
    assert is_course_owner_view(course, OTHER_TEACHER, None) is False
    assert is_course_owner_view(course, _student(), None) is False
