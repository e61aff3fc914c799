"""Failure taxonomy shared by the directory services and the HTTP layer."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError


class DirectoryError(Exception):
    """Base error with a fixed code, status and message."""

    code: int = 1
    status_code: int = 500
    message: str = "Something went wrong."
    retryable: bool = False

    def __init__(self, details: Any = None):
        super().__init__(self.message)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""
        result: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details is not None:
            result["details"] = self.details
        return result


class UndefinedProblem(DirectoryError):
    """Unclassified storage failure during a write."""


class DuplicatedEmail(DirectoryError):
    code = 2
    status_code = 409
    message = "Email already used."


class DatabaseError(DirectoryError):
    """A statement failed; ``details`` carries the engine's diagnostic code."""

    code = 3
    status_code = 500
    message = "There was a problem. Please try again later."


class NotFound(DirectoryError):
    code = 4
    status_code = 404
    message = "The entity was not found."


class ContactSupport(DirectoryError):
    """More than one row matched where uniqueness is enforced."""

    code = 5
    status_code = 500
    message = "Please contact the support and explain what happened."


class NotLoggedIn(DirectoryError):
    code = 6
    status_code = 404
    message = "Please log in again."


class PoolExhausted(DirectoryError):
    """No pooled connection became available within the pool timeout."""

    code = 7
    status_code = 503
    message = "The service is busy. Please try again."
    retryable = True


class InvalidField(DirectoryError):
    """A field name outside the allow-list reached the query layer."""

    code = 8
    status_code = 422
    message = "Unknown or forbidden field."


def diagnostic_code(exc: BaseException) -> str | None:
    """Return the storage engine's error code for ``exc`` if it has one."""
    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    for attr in ("pgcode", "sqlstate", "sqlite_errorname"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    if orig is None:
        return None
    return type(orig).__name__


@contextmanager
def storage_errors(
    error_class: type[DirectoryError] = DatabaseError,
) -> Iterator[None]:
    """Re-raise SQLAlchemy failures inside the block as ``error_class``."""
    try:
        yield
    except PoolTimeoutError as e:
        raise PoolExhausted() from e
    except SQLAlchemyError as e:
        details = diagnostic_code(e) if error_class is DatabaseError else None
        raise error_class(details) from e
