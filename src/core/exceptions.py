"""
Core Exceptions.

Error kinds shared by the scheduler core, the persistence boundary and the
outer surfaces (API, CLI):

- ValidationError: bad input to the core (quality, limit, timestamps)
- NotFoundError: an item that does not exist in the word catalog
- ConcurrencyConflict: a state write lost a race at the persistence boundary
"""

from __future__ import annotations

from typing import Any


class SchedulerError(Exception):
    """Base class for all spaced-repetition errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ValidationError(SchedulerError):
    """Raised when an input is outside its allowed domain. No state is changed."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message, field=field, value=value)
        self.field = field
        self.value = value


class NotFoundError(SchedulerError):
    """Raised by the persistence boundary for an unknown item."""

    def __init__(self, item_id: Any):
        super().__init__(f"Item not found: {item_id}", item_id=item_id)
        self.item_id = item_id


class ConcurrencyConflict(SchedulerError):
    """Raised when a state write was based on a stale version."""

    def __init__(self, user_id: Any, item_id: Any, expected_version: int | None = None):
        super().__init__(
            f"Review state for user={user_id} item={item_id} changed concurrently "
            f"(expected version {expected_version})",
            user_id=user_id,
            item_id=item_id,
            expected_version=expected_version,
        )
        self.user_id = user_id
        self.item_id = item_id
        self.expected_version = expected_version
