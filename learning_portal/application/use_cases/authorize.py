import structlog

from ...domain.entities import Identity, Role, Student
from ...domain.errors import Forbidden, InternalError, PortalError, Unauthorized
from ...infrastructure.metrics import auth_failures_total
from ..ports import IAdminRepository, IStudentRepository, ITokenService

logger = structlog.get_logger(__name__)

NOT_AUTHORIZED = "Not authorized to access this route"


class Authorize:
    """Resolves a bearer token into the identity allowed to call a route.

    NoToken -> TokenPresent -> Verified -> RoleMatched -> IdentityLoaded -> Authorized.
    Any failed step ends the request with Unauthorized or Forbidden; anything
    else going wrong along the way is reported as InternalError.
    """

    not_found_messages = {
        Role.STUDENT: "Student not found",
        Role.ADMIN: "Admin not found",
    }

    def __init__(self, tokens: ITokenService, students: IStudentRepository, admins: IAdminRepository):
        self.tokens = tokens
        self.stores = {Role.STUDENT: students, Role.ADMIN: admins}

    def execute(self, token: str | None, expected: Role) -> Identity:
        try:
            return self._authorize(token, expected)
        except PortalError as e:
            auth_failures_total.labels(reason=type(e).__name__).inc()
            logger.info("authorization_failed", expected_role=expected.value, reason=e.message)
            raise
        except Exception as e:
            logger.error("authorization_error", expected_role=expected.value, error=str(e))
            raise InternalError() from e

    def _authorize(self, token: str | None, expected: Role) -> Identity:
        if not token:
            raise Unauthorized(NOT_AUTHORIZED)

        claims = self.tokens.verify(token)
        if claims.role != expected:
            raise Unauthorized("Invalid token type")

        identity = self.stores[expected].find_by_id(claims.subject_id)
        if identity is None:
            raise Unauthorized(self.not_found_messages[expected])

        if isinstance(identity, Student) and not identity.is_active:
            raise Forbidden("Your account has been suspended")
        return identity
