# Overview: Domain error taxonomy shared by services and rendered by the app error handler.

"""
Error taxonomy.

Services raise these; routes do not translate them by hand. The handler
registered in create_app() renders every ApiError as

    {"status_code": 409, "error": "Conflict", "message": "..."}

Messages are deliberately generic for authentication failures so callers
cannot enumerate accounts, sessions or QR codes.
"""


class ApiError(Exception):
    status_code = 500
    kind = "Internal Server Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        return {
            "status_code": self.status_code,
            "error": self.kind,
            "message": self.message,
        }


class ValidationError(ApiError, ValueError):
    """400-level input problem."""
    status_code = 400
    kind = "Bad Request"


class UnauthorizedError(ApiError):
    """Bad credentials, dead session, invalid/expired/used QR code."""
    status_code = 401
    kind = "Unauthorized"


class ForbiddenError(ApiError):
    """Authenticated, but the role may not perform the operation."""
    status_code = 403
    kind = "Forbidden"


class NotFoundError(ApiError):
    """Entity missing or outside the caller's tenant scope."""
    status_code = 404
    kind = "Not Found"


class ConflictError(ApiError, ValueError):
    """409-level business rule conflict (duplicates, balance, terminal state)."""
    status_code = 409
    kind = "Conflict"
