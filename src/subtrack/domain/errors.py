"""Shared domain error messages and error types."""

from datetime import datetime
from decimal import Decimal


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class StoreError(RuntimeError):
    """The local cache could not complete an operation."""


class BatchOperationError(StoreError):
    """A batch operation failed partway.

    Ids processed before the failure stay mutated; ``applied`` holds how many.
    """

    def __init__(self, message: str, applied: int):
        super().__init__(message)
        self.applied = applied


def subscription_not_found(subscription_id: str) -> str:
    """Return message for missing subscription."""
    return f"Subscription {subscription_id} not found"


def duplicate_subscription_id(subscription_id: str) -> str:
    """Return message for an id that is already stored."""
    return f"Subscription with id '{subscription_id}' already exists"


def negative_amount(field_name: str, amount: Decimal) -> str:
    """Return message for a negative money amount."""
    return f"{field_name} must not be negative (got {amount})"


def cancellation_in_past(at: datetime, now: datetime) -> str:
    """Return message for a cancellation scheduled before the write time."""
    return (
        f"Cannot schedule cancellation at {at.isoformat()}: "
        f"it is earlier than the current time {now.isoformat()}"
    )


def batch_failed(operation: str, applied: int, total: int, error: Exception) -> str:
    """Return message for a batch that stopped partway."""
    return (
        f"{operation} failed after {applied} of {total} subscription"
        f"{'s' if total != 1 else ''}: {error}"
    )
