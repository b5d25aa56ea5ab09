"""
Listing Errors - Exception Taxonomy for the Approval Workflow

Every failure surfaced by the workflow is one of these types.
The web layer maps each type to an HTTP status; nothing is retried here.
"""

from __future__ import annotations

from typing import Optional


class ListingError(Exception):
    """Base class for all workflow errors."""

    code = "listing_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ListingError):
    """Raised when a required field is missing or invalid."""

    code = "validation_error"

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        self.errors = list(errors) if errors else [message]
        super().__init__(message)


class ConflictError(ListingError):
    """Raised when the current status does not allow the requested transition."""

    code = "conflict"


class NotFoundError(ListingError):
    """Raised when a referenced request or property no longer exists."""

    code = "not_found"


class TransientError(ListingError):
    """Raised for network or 5xx failures that may succeed on retry."""

    code = "transient"

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class AuthorizationError(ListingError):
    """Raised when the caller lacks the role or ownership for an action."""

    code = "forbidden"
