"""
Error taxonomy for the receiving subsystem.

Every error carries a message suitable for direct display to the user.
None of them are retried; callers surface them as-is.
"""
from typing import Optional


class ReceivingError(Exception):
    """Base class for all receiving errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ReceivingError):
    """A payload field is missing, malformed or out of range."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class AuthorizationError(ReceivingError):
    """
    The actor / request state combination does not permit the operation.

    condition is one of "role", "request_status" or "item_status" so the
    UI can explain which rule blocked the write.
    """

    def __init__(self, reason: str, condition: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.condition = condition


class NotFoundError(ReceivingError):
    """A referenced request, item or receipt does not exist."""


class ConflictError(ReceivingError):
    """The operation conflicts with the current state of the record."""


class InvalidTransitionError(ConflictError):
    """A request status change not allowed by the lifecycle."""
