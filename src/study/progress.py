"""
Progress Aggregator for vocabulary review.

Summarises a learner's review states:
- Mastered / learning / new word counts
- Average easiness factor
- Best current correct streak and total reviews

Also provides per-word analytics (mastery percentage, retention estimate).
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Hashable

from src.core.review_state import (
    DEFAULT_EASINESS,
    Item,
    Quality,
    ReviewHistoryEntry,
    ReviewState,
    ensure_timestamp,
)
from src.study.scheduler import SM2Scheduler

MASTERY_THRESHOLD = 5


@dataclass
class ProgressStats:
    """Summary statistics for one learner."""

    total_items: int
    mastered_count: int
    learning_count: int
    new_count: int
    average_easiness_factor: float
    current_streak: int
    total_reviews: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_items": self.total_items,
            "mastered_count": self.mastered_count,
            "learning_count": self.learning_count,
            "new_count": self.new_count,
            "average_easiness_factor": self.average_easiness_factor,
            "current_streak": self.current_streak,
            "total_reviews": self.total_reviews,
        }


def aggregate(
    items: Iterable[Item],
    states: Mapping[Hashable, ReviewState],
    mastery_threshold: int = MASTERY_THRESHOLD,
) -> ProgressStats:
    """
    Compute summary statistics from a learner's states.

    Only states that belong to one of `items` are counted, so the new
    count can never go negative. Words without a state, or at level 0,
    count as new.
    """
    items = list(items)
    present = [states[item.item_id] for item in items if item.item_id in states]

    mastered = sum(1 for s in present if s.repetition_level >= mastery_threshold)
    learning = sum(1 for s in present if 0 < s.repetition_level < mastery_threshold)

    if present:
        average_ef = sum(s.easiness_factor for s in present) / len(present)
    else:
        average_ef = DEFAULT_EASINESS

    return ProgressStats(
        total_items=len(items),
        mastered_count=mastered,
        learning_count=learning,
        new_count=len(items) - mastered - learning,
        average_easiness_factor=average_ef,
        current_streak=max((s.correct_streak for s in present), default=0),
        total_reviews=sum(s.review_count for s in present),
    )


# =============================================================================
# Per-word analytics
# =============================================================================


def average_quality(history: Sequence[ReviewHistoryEntry]) -> float:
    """Mean quality rating over a review history (0 when empty)."""
    if not history:
        return 0.0
    return sum(entry.quality for entry in history) / len(history)


def mastery_percentage(repetition_level: int, avg_quality: float) -> int:
    """
    Mastery estimate (0-100) for a single word.

    Each repetition level is worth 20% (capped at 90%), with a bonus of
    5% per quality point above 2.5.
    """
    base = min(repetition_level * 20, 90)
    quality_bonus = max(0.0, (avg_quality - 2.5) * 5)
    return int(math.floor(min(100.0, base + quality_bonus) + 0.5))


def estimate_retention(days_since_review: float, decay_days: float = 5.0) -> int:
    """
    Estimated recall probability (0-100) using an exponential forgetting curve.

    Formula: R = 100 * e^(-t / decay)
    """
    if days_since_review <= 0:
        return 100
    retention = 100 * math.exp(-days_since_review / decay_days)
    return max(0, min(100, int(math.floor(retention + 0.5))))


@dataclass
class ItemProgress:
    """Detailed progress for one word."""

    item: Item
    state: ReviewState | None
    mastery_percentage: int
    average_quality: float
    estimated_retention: int
    interval_preview: dict[Quality, int] = field(default_factory=dict)


def item_progress(
    item: Item,
    state: ReviewState | None,
    now: datetime,
    scheduler: SM2Scheduler | None = None,
    decay_days: float = 5.0,
) -> ItemProgress:
    """Build per-word analytics at reference time `now`."""
    now = ensure_timestamp(now)
    scheduler = scheduler or SM2Scheduler()

    if state is None or state.last_review is None:
        return ItemProgress(
            item=item,
            state=state,
            mastery_percentage=0,
            average_quality=0.0,
            estimated_retention=0,
            interval_preview=scheduler.preview_intervals(state),
        )

    avg = average_quality(state.review_history)
    elapsed_days = (now - state.last_review.timestamp).total_seconds() / 86400
    return ItemProgress(
        item=item,
        state=state,
        mastery_percentage=mastery_percentage(state.repetition_level, avg),
        average_quality=round(avg, 2),
        estimated_retention=estimate_retention(elapsed_days, decay_days),
        interval_preview=scheduler.preview_intervals(state),
    )
