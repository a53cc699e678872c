"""
SM-2 Scheduler - review state transitions for vocabulary words.

Implements the SuperMemo SM-2 rules:
1. Easiness factor update on every review, bounded below at 1.30
2. Failed recall (quality < 3) resets the repetition level and schedules a 1-day re-test
3. Successful recall advances the level: 1 day, then 6 days, then geometric growth

The scheduler is a pure function over explicit state: it never reads the
clock, touches storage or logs. Callers pass `now` and persist the result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.core.exceptions import ValidationError
from src.core.review_state import (
    DEFAULT_EASINESS,
    MINIMUM_EASINESS,
    Quality,
    ReviewHistoryEntry,
    ReviewState,
    ensure_timestamp,
)

# Fixed intervals for the first two successful stages (days)
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
RELEARN_INTERVAL_DAYS = 1

# EF is kept at two decimals (stored as EF x 100 historically)
EASINESS_PRECISION = 2


@dataclass(frozen=True)
class SchedulerConfig:
    """Tunable scheduler parameters."""

    default_easiness: float = DEFAULT_EASINESS
    maximum_interval_days: int = 365

    def __post_init__(self) -> None:
        if self.default_easiness < MINIMUM_EASINESS:
            raise ValidationError(
                f"default_easiness must be >= {MINIMUM_EASINESS}",
                field="default_easiness",
                value=self.default_easiness,
            )
        if self.maximum_interval_days < SECOND_INTERVAL_DAYS:
            raise ValidationError(
                f"maximum_interval_days must be >= {SECOND_INTERVAL_DAYS}",
                field="maximum_interval_days",
                value=self.maximum_interval_days,
            )


@dataclass(frozen=True)
class Transition:
    """Outcome of applying one rating to a state, before it is dated."""

    repetition_level: int
    correct_streak: int
    interval_days: int
    easiness_factor: float


def next_easiness(easiness_factor: float, quality: Quality) -> float:
    """
    SM-2 easiness update.

    Formula: EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), min 1.30
    """
    miss = 5 - int(quality)
    updated = easiness_factor + (0.1 - miss * (0.08 + miss * 0.02))
    return round(max(updated, MINIMUM_EASINESS), EASINESS_PRECISION)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SM2Scheduler:
    """
    SM-2 spaced repetition scheduler.

    Computes the next review state for a word from its prior state and a
    0-5 quality rating.
    """

    def __init__(self, config: SchedulerConfig | None = None):
        self.config = config or SchedulerConfig()

    def seed_state(self) -> ReviewState:
        """State used for a word that has never been reviewed."""
        return ReviewState.new(self.config.default_easiness)

    def next_interval(
        self,
        repetition_level: int,
        previous_interval: int | None,
        easiness_factor: float,
    ) -> int:
        """
        Interval (days) for a successful review reaching `repetition_level`.

        Level 1 -> 1 day, level 2 -> 6 days, level >= 3 -> previous * EF.
        Geometric intervals always grow by at least one day and are capped
        at the configured maximum.
        """
        if repetition_level <= 1:
            return FIRST_INTERVAL_DAYS
        if repetition_level == 2:
            return SECOND_INTERVAL_DAYS

        previous = previous_interval or FIRST_INTERVAL_DAYS
        interval = _round_half_up(previous * easiness_factor)
        if interval <= previous:
            interval = previous + 1
        return min(interval, self.config.maximum_interval_days)

    def transition(self, prior: ReviewState | None, quality: Quality) -> Transition:
        """Apply a validated rating to a state without dating it."""
        state = prior or self.seed_state()
        easiness = next_easiness(state.easiness_factor, quality)

        if not quality.is_success:
            return Transition(
                repetition_level=0,
                correct_streak=0,
                interval_days=RELEARN_INTERVAL_DAYS,
                easiness_factor=easiness,
            )

        level = state.repetition_level + 1
        return Transition(
            repetition_level=level,
            correct_streak=state.correct_streak + 1,
            interval_days=self.next_interval(level, state.last_interval_days, easiness),
            easiness_factor=easiness,
        )

    def compute_next_state(
        self,
        prior: ReviewState | None,
        quality: int | Quality,
        now: datetime,
    ) -> ReviewState:
        """
        Process one review and return the new state.

        Args:
            prior: Current state, or None for a word never reviewed
            quality: Recall quality 0-5
            now: Review time (timezone-aware), supplied by the caller

        Returns:
            New ReviewState; `prior` is left untouched

        Raises:
            ValidationError: For an out-of-range quality or a malformed `now`
        """
        rating = Quality.parse(quality)
        now = ensure_timestamp(now)
        state = prior or self.seed_state()

        step = self.transition(state, rating)
        entry = ReviewHistoryEntry(
            timestamp=now,
            quality=int(rating),
            interval_days=step.interval_days,
            easiness_factor_after=step.easiness_factor,
        )
        return ReviewState(
            repetition_level=step.repetition_level,
            easiness_factor=step.easiness_factor,
            next_review_due_at=now + timedelta(days=step.interval_days),
            correct_streak=step.correct_streak,
            review_history=state.review_history + (entry,),
        )

    def preview_intervals(self, prior: ReviewState | None) -> dict[Quality, int]:
        """
        Preview the interval each possible rating would produce.

        Useful for showing the learner what each answer button means.
        """
        return {rating: self.transition(prior, rating).interval_days for rating in Quality}


_default_scheduler = SM2Scheduler()


def compute_next_state(
    prior: ReviewState | None,
    quality: int | Quality,
    now: datetime,
) -> ReviewState:
    """Compute the next review state with the default scheduler configuration."""
    return _default_scheduler.compute_next_state(prior, quality, now)
