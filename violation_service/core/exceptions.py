"""
Typed business failures.

Services raise these; the HTTP layer maps them onto status codes. Anything that is
not a ``ServiceError`` is treated as an internal failure.
"""


class ServiceError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "internal error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"
    default_message = "not authenticated"


class PermissionDenied(ServiceError):
    status_code = 403
    code = "permission_denied"
    default_message = "permission denied"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"
    default_message = "not found"


class InvalidInput(ServiceError):
    status_code = 400
    code = "invalid_input"
    default_message = "invalid input"


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"
    default_message = "an active appeal already exists for this violation"


class InvalidStatusTransition(ServiceError):
    status_code = 400
    code = "invalid_status_transition"
    default_message = "invalid status transition"
