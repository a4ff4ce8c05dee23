from unittest.mock import MagicMock

import pytest

from learning_portal.application.use_cases.authorize import Authorize
from learning_portal.domain.entities import Admin, Role, Student, StudentStatus, Track
from learning_portal.domain.errors import Forbidden, InternalError, Unauthorized
from learning_portal.infrastructure.security import TokenService

tokens = TokenService(secret="unit-secret")


def make_student(status=StudentStatus.ACTIVE):
    return Student(
        id="s1",
        full_name="Student One",
        email="s1@example.com",
        whatsapp_number="+1",
        track=Track.WEB_DEVELOPMENT,
        status=status,
    )


@pytest.fixture
def students():
    repo = MagicMock()
    repo.find_by_id.return_value = make_student()
    return repo


@pytest.fixture
def admins():
    repo = MagicMock()
    repo.find_by_id.return_value = Admin(id="a1", name="Admin", email="a1@example.com")
    return repo


@pytest.fixture
def authorizer(students, admins):
    return Authorize(tokens=tokens, students=students, admins=admins)


def test_student_token_authorized(authorizer, students):
    """Тест: студент с валидным токеном проходит"""
    identity = authorizer.execute(tokens.issue("s1", Role.STUDENT), Role.STUDENT)
    assert isinstance(identity, Student)
    assert identity.id == "s1"
    students.find_by_id.assert_called_once_with("s1")


def test_admin_token_authorized(authorizer):
    identity = authorizer.execute(tokens.issue("a1", Role.ADMIN), Role.ADMIN)
    assert isinstance(identity, Admin)


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token(authorizer, token):
    """Тест: нет токена"""
    with pytest.raises(Unauthorized) as exc:
        authorizer.execute(token, Role.STUDENT)
    assert exc.value.message == "Not authorized to access this route"


def test_invalid_token(authorizer, students):
    with pytest.raises(Unauthorized) as exc:
        authorizer.execute("broken.token.value", Role.STUDENT)
    assert exc.value.message == "Not authorized to access this route"
    students.find_by_id.assert_not_called()


@pytest.mark.parametrize("issued, expected", [
    (Role.ADMIN, Role.STUDENT),
    (Role.STUDENT, Role.ADMIN),
])
def test_role_mismatch(authorizer, students, admins, issued, expected):
    """Тест: токен другой роли отклоняется даже с верной подписью"""
    with pytest.raises(Unauthorized) as exc:
        authorizer.execute(tokens.issue("x1", issued), expected)
    assert exc.value.message == "Invalid token type"
    students.find_by_id.assert_not_called()
    admins.find_by_id.assert_not_called()


def test_deleted_student(authorizer, students):
    """Тест: аккаунт удалён после выдачи токена"""
    students.find_by_id.return_value = None
    with pytest.raises(Unauthorized) as exc:
        authorizer.execute(tokens.issue("s1", Role.STUDENT), Role.STUDENT)
    assert exc.value.message == "Student not found"


def test_deleted_admin(authorizer, admins):
    admins.find_by_id.return_value = None
    with pytest.raises(Unauthorized) as exc:
        authorizer.execute(tokens.issue("a1", Role.ADMIN), Role.ADMIN)
    assert exc.value.message == "Admin not found"


def test_suspended_student(authorizer, students):
    """Тест: заблокированный студент получает Forbidden"""
    students.find_by_id.return_value = make_student(StudentStatus.SUSPENDED)
    with pytest.raises(Forbidden) as exc:
        authorizer.execute(tokens.issue("s1", Role.STUDENT), Role.STUDENT)
    assert exc.value.status_code == 403


def test_store_failure_is_internal_error(authorizer, students):
    """Тест: недоступное хранилище даёт InternalError, а не 401"""
    students.find_by_id.side_effect = RuntimeError("database is down")
    with pytest.raises(InternalError) as exc:
        authorizer.execute(tokens.issue("s1", Role.STUDENT), Role.STUDENT)
    assert exc.value.status_code == 500
    assert "database" not in exc.value.message
