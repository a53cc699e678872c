"""
Review Service for vocabulary spaced repetition.

Provides the operations used by the API and CLI:
- Fetch words due for review
- Record a review (load -> compute -> store, retried on conflicts)
- Fetch progress statistics
- Fetch detailed progress for a single word
"""

from __future__ import annotations

from datetime import datetime
from typing import Hashable

from loguru import logger

from config import get_settings
from src.core.exceptions import ConcurrencyConflict, ValidationError
from src.core.review_state import Quality, ReviewState, ensure_timestamp
from src.db.repository import ReviewStateRepository
from src.study.due_selector import DueItem, is_due, recommended_study_limit, summarize_due
from src.study.progress import ItemProgress, ProgressStats, aggregate, item_progress
from src.study.scheduler import SM2Scheduler


class ReviewService:
    """
    High-level service for review operations.

    Coordinates between the persistence boundary and the pure scheduler,
    selector and aggregator.
    """

    def __init__(
        self,
        repository: ReviewStateRepository,
        scheduler: SM2Scheduler | None = None,
        settings=None,
    ):
        """
        Initialize review service.

        Args:
            repository: Persistence boundary for words and review states
            scheduler: SM-2 scheduler (built from settings when omitted)
            settings: Application settings (cached settings when omitted)
        """
        self.repository = repository
        self.settings = settings or get_settings()
        self.scheduler = scheduler or SM2Scheduler(self.settings.get_scheduler_config())

        if self.settings.srs_max_write_attempts < 1:
            raise ValidationError(
                "srs_max_write_attempts must be at least 1",
                field="srs_max_write_attempts",
                value=self.settings.srs_max_write_attempts,
            )

    def _states_for(self, user_id: str):
        pairs = self.repository.list_items_and_states(user_id)
        items = [item for item, _ in pairs]
        states = {item.item_id: state for item, state in pairs if state is not None}
        return items, states

    def fetch_due(self, user_id: str, now: datetime, limit: int | None = None) -> list[DueItem]:
        """
        Get the words due for review, in review order.

        Args:
            user_id: Learner identifier
            now: Reference time
            limit: Maximum words to return (settings default when None)
        """
        if limit is None:
            limit = self.settings.srs_default_due_limit
        items, states = self._states_for(user_id)
        due = summarize_due(items, states, now, limit)
        logger.debug(f"User {user_id}: {len(due)} due words (limit={limit})")
        return due

    def count_due(self, user_id: str, now: datetime) -> tuple[int, int]:
        """
        Count due words and the recommended number to study today.

        Returns:
            Tuple of (total_due, recommended)
        """
        now = ensure_timestamp(now)
        items, states = self._states_for(user_id)
        total_due = sum(1 for item in items if is_due(states.get(item.item_id), now))
        return total_due, recommended_study_limit(total_due, self.settings.srs_daily_capacity)

    def record_review(
        self,
        user_id: str,
        item_id: Hashable,
        quality: int,
        now: datetime,
    ) -> ReviewState:
        """
        Record one review and return the new state.

        The full read-compute-write cycle is retried when the store reports
        a concurrent write, up to srs_max_write_attempts times.

        Raises:
            ValidationError: Invalid quality or timestamp (nothing is stored)
            NotFoundError: Unknown word
            ConcurrencyConflict: Every attempt lost its race
        """
        rating = Quality.parse(quality)
        now = ensure_timestamp(now)
        self.repository.get_item(item_id)

        attempts = self.settings.srs_max_write_attempts
        attempt = 0
        while True:
            attempt += 1
            current = self.repository.get_versioned_state(user_id, item_id)
            new_state = self.scheduler.compute_next_state(current.state, rating, now)
            try:
                self.repository.put_state(
                    user_id, item_id, new_state, expected_version=current.version
                )
            except ConcurrencyConflict:
                if attempt == attempts:
                    logger.warning(
                        f"Review for user={user_id} word={item_id} lost {attempts} races, giving up"
                    )
                    raise
                logger.warning(
                    f"Concurrent review for user={user_id} word={item_id}, "
                    f"retrying ({attempt}/{attempts})"
                )
                continue

            logger.info(
                f"Recorded review user={user_id} word={item_id} quality={int(rating)} "
                f"level={new_state.repetition_level} "
                f"interval={new_state.last_interval_days}d"
            )
            return new_state

    def fetch_stats(self, user_id: str) -> ProgressStats:
        """Get summary statistics for a learner."""
        items, states = self._states_for(user_id)
        return aggregate(items, states, self.settings.srs_mastery_threshold)

    def fetch_item_progress(self, user_id: str, item_id: Hashable, now: datetime) -> ItemProgress:
        """Get detailed progress for one word."""
        item = self.repository.get_item(item_id)
        state = self.repository.get_state(user_id, item_id)
        return item_progress(
            item,
            state,
            now,
            scheduler=self.scheduler,
            decay_days=self.settings.srs_retention_decay_days,
        )
