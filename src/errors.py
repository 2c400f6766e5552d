"""Lifecycle error taxonomy.

Every failure the dashboard can see maps to one of these classes, so the
operator gets a message that tells "not found or deleted" apart from
"temporarily unavailable, retry" and "invalid input".
"""

from __future__ import annotations

from typing import Any, Optional


class LifecycleError(Exception):
    """Base class for errors raised by the submission lifecycle."""

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        submission_id: Optional[str] = None,
        operation: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.submission_id = submission_id
        self.operation = operation
        self.detail = detail or self.message
        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return self.__class__.__name__

    def with_context(
        self,
        submission_id: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> "LifecycleError":
        """Fill in submission id / operation if the raiser did not know them."""
        if self.submission_id is None:
            self.submission_id = submission_id
        if self.operation is None:
            self.operation = operation
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "detail": self.detail,
            "error_code": self.error_code,
            "submission_id": self.submission_id,
            "operation": self.operation,
        }


class NotFound(LifecycleError):
    """Submission or note does not exist, or was soft deleted."""

    status_code = 404
    default_message = "Submission not found or already deleted"


class ValidationError(LifecycleError):
    """Input rejected before it reached storage."""

    status_code = 422
    default_message = "Invalid input"


class StoreUnavailable(LifecycleError):
    """Transient database / network failure. Safe to retry."""

    status_code = 503
    default_message = "Storage is temporarily unavailable, please retry"


class Unauthorized(LifecycleError):
    """Caller is not signed in as an admin."""

    status_code = 401
    default_message = "Authentication required"


class RateLimited(LifecycleError):
    """Too many contact-form submissions from one client."""

    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."
