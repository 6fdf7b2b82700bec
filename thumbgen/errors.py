"""Exception hierarchy shared by every thumbgen component.

Every error carries ``user_message``, a string that can be shown as-is.
"""

from __future__ import annotations


class ThumbgenError(Exception):
    """Base class for all thumbgen errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.user_message = message


class ValidationError(ThumbgenError):
    """Local input was rejected before any network call (never retried)."""


class RemoteError(ThumbgenError):
    """The job service answered non-2xx, was unreachable, or sent a malformed body.

    ``http_status`` is None for transport and parse failures.
    """

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status

    def __repr__(self) -> str:
        return f"RemoteError(http_status={self.http_status!r}, message={self.user_message!r})"


class QuotaExceededError(ThumbgenError):
    """The user's plan does not allow another submission of this kind."""

    def __init__(self, kind: str, used: int | None = None, limit: int | None = None) -> None:
        if limit is None:
            message = "You don't have an active plan yet. Please choose a plan to get started."
        elif kind == "training":
            message = (
                "You have reached your face training limit. "
                "Please upgrade your plan to train more faces."
            )
        else:
            message = (
                "You have reached your image generation limit. "
                "Please upgrade your plan to generate more images."
            )
        super().__init__(message)
        self.kind = kind
        self.used = used
        self.limit = limit


class NotAuthenticatedError(ThumbgenError):
    """There is no signed-in session."""

    def __init__(self, message: str = "Please sign in to continue.") -> None:
        super().__init__(message)


class NotAuthorizedError(ThumbgenError):
    """The signed-in user may not perform an admin-only operation."""

    def __init__(self, message: str = "Admin access is required.") -> None:
        super().__init__(message)


class RecordNotFoundError(ThumbgenError):
    """The record store has no row for the requested key."""
