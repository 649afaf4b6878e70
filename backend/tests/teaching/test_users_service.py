"""
User management and self-service profile edits.
"""
import pytest

from identity_access.domain import User
from teaching.repo_memory import MemoryPortalRepo
from teaching.services.users import UsersService


class _RecordingAuthAdmin:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def update_password(self, user_id, new_password):
        if self.fail:
            raise RuntimeError("auth down")
        self.calls.append((user_id, new_password))


@pytest.fixture
def repo():
    repo = MemoryPortalRepo()
    repo.create_profile(User(id="t1", name="Teo", email="t@school.example", role="teacher"))
    repo.create_profile(User(id="t2", name="Tina", email="t2@school.example", role="teacher"))
    repo.create_profile(User(id="s1", name="Ana", email="a@school.example", role="student"))
    return repo


def _teacher(repo):
    return repo.get_profile("t1")


def test_list_users_requires_teacher(repo):
    service = UsersService(repo)
    assert [u.name for u in service.list_users(_teacher(repo))] == ["Ana", "Teo", "Tina"]
    with pytest.raises(PermissionError):
        service.list_users(repo.get_profile("s1"))


def test_toggle_active_and_promote_student(repo):
    service = UsersService(repo)
    assert service.set_active(_teacher(repo), "s1", False).value.is_active is False
    assert service.promote_to_teacher(_teacher(repo), "s1").value.role == "teacher"


def test_management_only_targets_students(repo):
    service = UsersService(repo)
    teacher = _teacher(repo)
    assert service.set_active(teacher, "t2", False).error == "forbidden"
    assert service.delete_user(teacher, "t1").error == "forbidden"
    assert service.promote_to_teacher(teacher, "missing").error == "not_found"
    assert service.delete_user(repo.get_profile("s1"), "t1").error == "forbidden"
    assert service.set_active(teacher, "s1", False, simulating=True).error == "simulation_active"


def test_delete_student(repo):
    service = UsersService(repo)
    assert service.delete_user(_teacher(repo), "s1").ok
    assert repo.get_profile("s1") is None


def test_update_own_profile_fields(repo):
    service = UsersService(repo)
    student = repo.get_profile("s1")
    result = service.update_profile(student, name=" Ana Maria ", classroom="c", year="8", profile_picture_url="")
    assert result.ok
    assert result.value.name == "Ana Maria" and result.value.classroom == "C" and result.value.year == 8
    assert result.value.profile_picture_url is None


@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"name": ""}, "invalid_name"),
        ({"classroom": "F"}, "invalid_classroom"),
        ({"year": 12}, "invalid_year"),
        ({"new_password": "abc", "confirm_password": "abc"}, "password_too_short"),
        ({"new_password": "abcdef", "confirm_password": "abcdeg"}, "password_mismatch"),
    ],
)
def test_profile_validation(repo, kwargs, code):
    result = UsersService(repo).update_profile(repo.get_profile("s1"), **kwargs)
    assert not result.ok and result.error == code


def test_password_change_delegated_to_auth_admin(repo):
    admin = _RecordingAuthAdmin()
    result = UsersService(repo, admin).update_profile(
        repo.get_profile("s1"), new_password="segredo1", confirm_password="segredo1"
    )
    assert result.ok
    assert admin.calls == [("s1", "segredo1")]


def test_password_change_failure_reported(repo):
    result = UsersService(repo, _RecordingAuthAdmin(fail=True)).update_profile(
        repo.get_profile("s1"), new_password="segredo1", confirm_password="segredo1"
    )
    assert result.error == "password_change_failed"


def test_unconfigured_auth_admin_reports_failure(repo):
    result = UsersService(repo).update_profile(
        repo.get_profile("s1"), new_password="segredo1", confirm_password="segredo1"
    )
    assert result.error == "password_change_failed"
