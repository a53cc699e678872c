"""
Core Module - Shared domain models and errors.

Components:
- review_state: ReviewState, ReviewHistoryEntry, Item, Quality
- exceptions: ValidationError, NotFoundError, ConcurrencyConflict
- log_setup: loguru sink configuration for entry points

Design Principle:
The study modules (scheduler, selector, aggregator) and the persistence
boundary import these types rather than redefining them.
"""

from src.core.exceptions import (
    ConcurrencyConflict,
    NotFoundError,
    SchedulerError,
    ValidationError,
)
from src.core.review_state import (
    DEFAULT_EASINESS,
    MINIMUM_EASINESS,
    Item,
    Quality,
    ReviewHistoryEntry,
    ReviewState,
    ensure_timestamp,
)

__all__ = [
    # Errors
    "SchedulerError",
    "ValidationError",
    "NotFoundError",
    "ConcurrencyConflict",
    # Model
    "DEFAULT_EASINESS",
    "MINIMUM_EASINESS",
    "Item",
    "Quality",
    "ReviewHistoryEntry",
    "ReviewState",
    "ensure_timestamp",
]
