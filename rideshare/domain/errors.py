"""
Domain errors.

Every error carries a short machine-readable ``reason`` and the HTTP status
the API layer renders it with.  Services raise these; routes never build
``HTTPException`` for business rules.
"""


class RideshareError(Exception):
    status_code = 500
    reason = "internal"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.reason


class Unauthorized(RideshareError):
    status_code = 401
    reason = "unauthorized"


class Forbidden(RideshareError):
    status_code = 403
    reason = "forbidden"


class NotFound(RideshareError):
    status_code = 404
    reason = "not_found"


class InvalidArgument(RideshareError):
    status_code = 400
    reason = "invalid_argument"


class InvalidState(RideshareError):
    status_code = 400
    reason = "invalid_state"


class Conflict(RideshareError):
    status_code = 409
    reason = "conflict"


class Internal(RideshareError):
    status_code = 500
    reason = "internal"
