# Overview: Application exception taxonomy shared by gates, services and the error reporter.

"""
Every caller-visible failure is an AppError subclass carrying the HTTP
status it maps to. Anything that is not an AppError (programming errors,
driver errors, ...) is treated as an UnclassifiedFault by the error reporter.
"""

from __future__ import annotations

from werkzeug.exceptions import HTTPException


class AppError(Exception):
    """Base class for failures with a caller-facing status and message."""

    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationFailure(AppError):
    """401: no valid session or token."""

    status_code = 401
    default_message = "Unauthenticated."


class AuthorizationFailure(AppError):
    """403: inactive account or insufficient role. `details` is added to JSON responses."""

    status_code = 403
    default_message = "This action is unauthorized."

    def __init__(self, message: str | None = None, **details):
        super().__init__(message)
        self.details = details


class ValidationFailure(AppError):
    """422: field-keyed, accumulated validation errors."""

    status_code = 422
    default_message = "The given data was invalid."

    def __init__(self, errors: dict[str, list[str]], message: str | None = None):
        super().__init__(message)
        self.errors = errors


class EntityNotFound(AppError):
    """404: a persisted record does not exist (or is soft-deleted)."""

    status_code = 404
    default_message = "Resource not found."

    def __init__(self, model: str, ids=None, message: str | None = None):
        super().__init__(message)
        self.model = model
        self.ids = list(ids) if isinstance(ids, (list, tuple, set)) else ([ids] if ids is not None else [])


class ReferenceConflict(AppError):
    """409: a generated reference kept colliding. Safe to retry."""

    status_code = 409
    default_message = "Could not allocate a unique reference. Please retry."


class UnclassifiedFault(AppError):
    """500: default bucket for everything else."""


def classify_exception(exc: BaseException) -> type[AppError]:
    """Map any exception onto the taxonomy."""
    if isinstance(exc, AppError):
        return type(exc)
    return UnclassifiedFault


def status_for_exception(exc: BaseException) -> int:
    if isinstance(exc, HTTPException) and exc.code:
        return exc.code
    return classify_exception(exc).status_code
