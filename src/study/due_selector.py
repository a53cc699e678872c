"""
Due-Set Selector.

Chooses which words a learner should see now and in what order:
1. Never-reviewed words first
2. Then reviewed words by ascending repetition level (weakest first)
3. Ties broken by curriculum position (day, order)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Hashable

from src.core.exceptions import ValidationError
from src.core.review_state import Item, ReviewState, ensure_timestamp


@dataclass(frozen=True)
class DueItem:
    """Summary of a due word returned to callers."""

    item: Item
    is_new: bool
    repetition_level: int
    next_review_due_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item.item_id,
            "label": self.item.label,
            "is_new": self.is_new,
            "repetition_level": self.repetition_level,
            "next_review_due_at": (
                self.next_review_due_at.isoformat() if self.next_review_due_at else None
            ),
        }


def validate_limit(limit: Any) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"limit must be an integer, got {limit!r}", field="limit", value=limit)
    if limit <= 0:
        raise ValidationError(f"limit must be positive, got {limit}", field="limit", value=limit)
    return limit


def is_due(state: ReviewState | None, now: datetime) -> bool:
    """A word is due when it has no state or its due time has passed."""
    if state is None or state.next_review_due_at is None:
        return True
    return state.next_review_due_at <= now


def _order_key(item: Item, state: ReviewState | None) -> tuple:
    if state is None:
        return (0, 0, item.sort_key)
    return (1, state.repetition_level, item.sort_key)


def select_due(
    items: Iterable[Item],
    states: Mapping[Hashable, ReviewState],
    now: datetime,
    limit: int,
) -> list[Item]:
    """
    Return the due words in review order, truncated to `limit`.

    Args:
        items: The learner's word population
        states: Review states keyed by item_id (missing = never reviewed)
        now: Reference time, supplied by the caller
        limit: Maximum number of words (must be positive)

    Raises:
        ValidationError: For a non-positive limit or malformed `now`
    """
    limit = validate_limit(limit)
    now = ensure_timestamp(now)

    due = [(item, states.get(item.item_id)) for item in items]
    due = [(item, state) for item, state in due if is_due(state, now)]
    due.sort(key=lambda pair: _order_key(*pair))
    return [item for item, _ in due[:limit]]


def summarize_due(
    items: Iterable[Item],
    states: Mapping[Hashable, ReviewState],
    now: datetime,
    limit: int,
) -> list[DueItem]:
    """select_due, with each word flagged new/reviewed for display."""
    summaries = []
    for item in select_due(items, states, now, limit):
        state = states.get(item.item_id)
        summaries.append(
            DueItem(
                item=item,
                is_new=state is None,
                repetition_level=state.repetition_level if state else 0,
                next_review_due_at=state.next_review_due_at if state else None,
            )
        )
    return summaries


def recommended_study_limit(total_due: int, capacity: int = 20) -> int:
    """Study everything due when it fits the daily capacity, otherwise the capacity."""
    if total_due <= capacity:
        return total_due
    return capacity
