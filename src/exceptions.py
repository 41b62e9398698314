"""Domain exception hierarchy shared by services, jobs and repositories."""

from __future__ import annotations


class AppException(Exception):
    """Base exception for all domain errors.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class ValidationException(AppException):
    code = "VALIDATION_ERROR"
    status_code = 422


class StateConflictException(AppException):
    code = "STATE_CONFLICT"
    status_code = 409


class DependencyException(AppException):
    """An external system (database, billing provider, storage, lock store) failed."""

    code = "DEPENDENCY_ERROR"
    status_code = 502


class InternalException(AppException):
    code = "INTERNAL_ERROR"
    status_code = 500


def wrap(kind: type[AppException], exc: BaseException, message: str) -> AppException:
    """Wrap ``exc`` as ``kind`` unless it already is a domain error.

    Domain errors keep their own class so a StateConflict raised deep inside a
    provider round trip is not downgraded to a Dependency error.
    """
    if isinstance(exc, AppException):
        wrapped = type(exc)(f"{message}: {exc.message}", exc.details)
    else:
        wrapped = kind(f"{message}: {exc}")
    wrapped.__cause__ = exc
    return wrapped


class MultiError(Exception):
    """Several independent failures collected by one pass."""

    def __init__(self, errors: list[BaseException]) -> None:
        super().__init__("; ".join(str(e) for e in errors))
        self.errors = list(errors)


def combine_errors(errors: list[BaseException]) -> BaseException | None:
    """Collapse collected errors: none, the single error, or a MultiError."""
    errors = [e for e in errors if e is not None]
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return MultiError(errors)
