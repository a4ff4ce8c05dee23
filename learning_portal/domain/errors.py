class PortalError(Exception):
    """Base for failures that map onto a response envelope."""
    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(PortalError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors


class Unauthorized(PortalError):
    status_code = 401
    default_message = "Not authorized to access this route"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class InternalError(PortalError):
    status_code = 500
    default_message = "Server error"
