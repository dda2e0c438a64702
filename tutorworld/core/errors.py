from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class AppError(Exception):
    """Typed failure raised by services and rendered by the API layer."""

    kind = "error"
    default_status = 500

    def __init__(self, message: str, status_code: int = None, kind: str = None):
        self.message = message
        self.status_code = status_code or self.default_status
        if kind:
            self.kind = kind
        super().__init__(message)


class Unauthenticated(AppError):
    kind = "unauthenticated"
    default_status = 401


class Forbidden(AppError):
    kind = "forbidden"
    default_status = 403


class NotFound(AppError):
    kind = "not_found"
    default_status = 404


class InvalidState(AppError):
    kind = "invalid_state"
    default_status = 400


class Conflict(AppError):
    kind = "conflict"
    default_status = 409


class ValidationFailed(AppError):
    kind = "validation_error"
    default_status = 400


def db_exception(func):
    """Translate persistence failures of a service method into AppErrors.

    The wrapped method's owner is expected to expose its session as ``self.db``.
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except IntegrityError:
            self.db.rollback()
            # mostly duplicate unique keys
            raise Conflict("Duplicate entry: already exists")
        except SQLAlchemyError:
            self.db.rollback()
            raise AppError("Database error occurred", 500, kind="database_error")

    return wrapper
