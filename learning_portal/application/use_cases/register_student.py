from ...domain.entities import Role, Student, normalize_email
from ...domain.errors import ValidationFailed
from ..dto import RegisterStudentInput
from ..ports import IStudentRepository, ITokenService


class RegisterStudent:
    def __init__(self, repo: IStudentRepository, tokens: ITokenService):
        self.repo = repo
        self.tokens = tokens

    def execute(self, data: RegisterStudentInput) -> tuple[Student, str]:
        data.email = normalize_email(data.email)
        if "@" not in data.email:
            raise ValidationFailed("Please provide a valid email")
        if self.repo.find_by_email(data.email):
            raise ValidationFailed("Email already registered")
        student = self.repo.create(data)
        token = self.tokens.issue(student.id, Role.STUDENT)
        return student, token
