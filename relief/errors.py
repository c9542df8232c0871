"""Allocation and identity error classes.

Every business-rule violation raised by the engine or the identity service
is a ReliefError. The HTTP layer maps ``code`` to a status and response body.
"""

from __future__ import annotations


class ReliefError(Exception):
    """Base exception for client-facing errors."""

    code = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class InvalidInputError(ReliefError):
    """Raised when a request has malformed or missing fields."""

    code = "invalid_input"


class ForbiddenError(ReliefError):
    """Raised when the caller's role or ownership does not permit the action."""

    code = "forbidden"


class NotFoundError(ReliefError):
    """Raised when a referenced camp, user or selection does not exist."""

    code = "not_found"


class ConflictError(ReliefError):
    """Raised on a uniqueness violation (duplicate email, second selection)."""

    code = "conflict"


class CapacityExhaustedError(ReliefError):
    """Raised when a camp has no beds left."""

    code = "capacity_exhausted"


class AuthenticationError(ReliefError):
    """Raised when login credentials do not match."""

    code = "authentication_failed"


class InternalError(ReliefError):
    """Raised when storage fails or state is inconsistent."""

    code = "internal"


class AllocationBusyError(InternalError):
    """Raised when the allocation lock cannot be acquired in time."""

    code = "busy"
