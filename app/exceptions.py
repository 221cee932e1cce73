"""
Error taxonomy raised by the service layer.

Services never recover locally; every failure propagates to the caller.
``status_code`` is the HTTP status family an outer HTTP layer is expected
to map each error onto.
"""


class AppError(Exception):
    """Base exception for service errors."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    status_code = 404


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class ConflictError(AppError):
    """A unique constraint (email, slug, tag name) was violated."""

    status_code = 409


class DatabaseError(AppError):
    """Any other store failure, including foreign-key violations."""

    status_code = 500
