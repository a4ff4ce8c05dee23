import structlog

from ...domain.entities import Admin, Role, Student, normalize_email
from ...domain.errors import Forbidden, Unauthorized
from ...infrastructure.metrics import logins_total
from ..ports import IAdminRepository, IPasswordHasher, IStudentRepository, ITokenService

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class LoginStudent:
    """Checks student credentials and issues a student token.

    An unknown email and a wrong password fail identically. The suspension
    check runs only once the password has matched.
    """

    def __init__(self, repo: IStudentRepository, hasher: IPasswordHasher, tokens: ITokenService):
        self.repo = repo
        self.hasher = hasher
        self.tokens = tokens

    def execute(self, email: str, password: str) -> tuple[Student, str]:
        student = self.repo.find_by_email(normalize_email(email), include_password=True)
        if student is None:
            self.hasher.dummy_verify()
            logins_total.labels(role=Role.STUDENT.value, outcome="invalid").inc()
            raise Unauthorized(INVALID_CREDENTIALS)
        if not self.repo.compare_password(student, password):
            logins_total.labels(role=Role.STUDENT.value, outcome="invalid").inc()
            raise Unauthorized(INVALID_CREDENTIALS)
        if not student.is_active:
            logins_total.labels(role=Role.STUDENT.value, outcome="suspended").inc()
            logger.info("login_rejected_suspended", student_id=student.id)
            raise Forbidden("Your account has been suspended. Please contact support.")

        self.repo.touch_last_login(student.id)
        logins_total.labels(role=Role.STUDENT.value, outcome="ok").inc()
        return self.repo.find_by_id(student.id) or student, self.tokens.issue(student.id, Role.STUDENT)


class LoginAdmin:
    def __init__(self, repo: IAdminRepository, hasher: IPasswordHasher, tokens: ITokenService):
        self.repo = repo
        self.hasher = hasher
        self.tokens = tokens

    def execute(self, email: str, password: str) -> tuple[Admin, str]:
        admin = self.repo.find_by_email(normalize_email(email), include_password=True)
        if admin is None:
            self.hasher.dummy_verify()
        if admin is None or not self.repo.compare_password(admin, password):
            logins_total.labels(role=Role.ADMIN.value, outcome="invalid").inc()
            raise Unauthorized(INVALID_CREDENTIALS)
        logins_total.labels(role=Role.ADMIN.value, outcome="ok").inc()
        return admin, self.tokens.issue(admin.id, Role.ADMIN)
