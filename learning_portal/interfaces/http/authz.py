from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.use_cases.authorize import Authorize
from ...domain.entities import Identity, Role
from ...infrastructure.repositories import AdminRepository, StudentRepository
from ...infrastructure.security import TokenService
from .deps import get_admins, get_students, get_tokens

# a missing header is reported by the guard itself as 401
bearer = HTTPBearer(auto_error=False)


def get_authorizer(
    tokens: TokenService = Depends(get_tokens),
    students: StudentRepository = Depends(get_students),
    admins: AdminRepository = Depends(get_admins),
) -> Authorize:
    return Authorize(tokens=tokens, students=students, admins=admins)


def require_role(role: Role):
    def guard(
        request: Request,
        creds: HTTPAuthorizationCredentials | None = Depends(bearer),
        authorizer: Authorize = Depends(get_authorizer),
    ) -> Identity:
        token = creds.credentials if creds else None
        identity = authorizer.execute(token, role)
        request.state.identity = identity
        return identity

    guard.__name__ = f"require_{role.value}"
    return guard


require_student = require_role(Role.STUDENT)
require_admin = require_role(Role.ADMIN)
