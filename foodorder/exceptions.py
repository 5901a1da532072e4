"""
Domain error taxonomy.

Services raise these close to where the problem is detected. The API layer
maps each one to its HTTP status with a single exception handler, so
service code never deals with HTTP details.
"""


class AppError(Exception):
    """Base class for errors that are safe to show to the caller."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    status_code = 404
    error = "Not Found"


class BadRequestError(AppError):
    status_code = 400
    error = "Bad Request"


class ConflictError(BadRequestError):
    status_code = 409
    error = "Conflict"


class UnauthorizedError(AppError):
    status_code = 401
    error = "Unauthorized"


class InternalError(AppError):
    """Unexpected persistence or gateway failure with internals hidden."""
