"""
Application error taxonomy.

Every failure raised by the issue and survey engines is an ``AppError``
subclass carrying a user-facing message and the HTTP status class the
transport layer should use. ``is_operational`` separates expected policy
violations (safe to show verbatim) from unexpected internal failures.
"""

from fastapi import status


class AppError(Exception):
    """Base class for operational errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_operational: bool = True,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.is_operational = is_operational

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.kind}({self.message!r}, status_code={self.status_code})"


class NotFoundError(AppError):
    """The requested entity has no live record."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(AppError):
    """An issue status change is not permitted by the transition table."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(AppError):
    """The actor lacks the role or ownership required for the action."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidArgumentError(AppError):
    """An out-of-range selection or value."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateError(AppError):
    """The target is not in a state that accepts the operation."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    """A concurrent write won the race for the same record."""

    status_code = status.HTTP_409_CONFLICT
