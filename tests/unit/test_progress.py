"""
Unit tests for progress statistics and per-word analytics.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.review_state import Item, Quality, ReviewHistoryEntry, ReviewState
from src.study.progress import (
    aggregate,
    average_quality,
    estimate_retention,
    item_progress,
    mastery_percentage,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_state(level, easiness=2.5, streak=0, qualities=()):
    history = [
        ReviewHistoryEntry(
            timestamp=T0 + timedelta(days=i),
            quality=q,
            interval_days=1,
            easiness_factor_after=easiness,
        )
        for i, q in enumerate(qualities)
    ]
    return ReviewState(
        repetition_level=level,
        easiness_factor=easiness,
        correct_streak=streak,
        review_history=history,
    )


class TestAggregate:
    def test_mastered_learning_and_new_counts(self, sample_items):
        states = {1: make_state(0), 2: make_state(5), 3: make_state(7)}

        stats = aggregate(sample_items, states)

        assert stats.total_items == 4
        assert stats.mastered_count == 2
        assert stats.learning_count == 0
        # level-0 word plus the never-reviewed word
        assert stats.new_count == 2

    def test_learning_words(self, sample_items):
        states = {1: make_state(1), 2: make_state(4), 3: make_state(5)}
        stats = aggregate(sample_items, states)

        assert stats.learning_count == 2
        assert stats.mastered_count == 1
        assert stats.new_count == 1

    def test_counts_add_up(self, sample_items):
        states = {1: make_state(2), 4: make_state(9)}
        stats = aggregate(sample_items, states)

        assert stats.mastered_count + stats.learning_count + stats.new_count == stats.total_items

    def test_empty_defaults(self, sample_items):
        stats = aggregate(sample_items, {})

        assert stats.new_count == 4
        assert stats.average_easiness_factor == 2.5
        assert stats.current_streak == 0
        assert stats.total_reviews == 0

    def test_no_items_at_all(self):
        stats = aggregate([], {})
        assert stats.total_items == 0
        assert stats.new_count == 0

    def test_average_easiness_is_exact_mean(self, sample_items):
        states = {1: make_state(1, easiness=2.5), 2: make_state(1, easiness=2.0), 3: make_state(1, 1.3)}
        stats = aggregate(sample_items, states)
        assert stats.average_easiness_factor == pytest.approx((2.5 + 2.0 + 1.3) / 3)

    def test_streak_and_review_totals(self, sample_items):
        states = {
            1: make_state(2, streak=2, qualities=(4, 5)),
            2: make_state(0, streak=0, qualities=(4, 1)),
            3: make_state(3, streak=3, qualities=(3, 4, 5)),
        }
        stats = aggregate(sample_items, states)

        assert stats.current_streak == 3
        assert stats.total_reviews == 7

    def test_states_for_unlisted_words_are_ignored(self, sample_items):
        states = {1: make_state(5), 99: make_state(6, easiness=1.3)}
        stats = aggregate(sample_items, states)

        assert stats.mastered_count == 1
        assert stats.new_count == 3
        assert stats.average_easiness_factor == 2.5

    def test_custom_mastery_threshold(self, sample_items):
        states = {1: make_state(3), 2: make_state(2)}
        stats = aggregate(sample_items, states, mastery_threshold=3)

        assert stats.mastered_count == 1
        assert stats.learning_count == 1

    def test_to_dict(self, sample_items):
        data = aggregate(sample_items, {}).to_dict()
        assert data["total_items"] == 4
        assert set(data) >= {"mastered_count", "learning_count", "new_count", "current_streak"}


class TestWordAnalytics:
    def test_average_quality(self):
        assert average_quality(make_state(2, qualities=(3, 4, 5)).review_history) == 4.0
        assert average_quality(()) == 0.0

    @pytest.mark.parametrize(
        "level,avg,expected",
        [(0, 0.0, 0), (2, 2.0, 40), (3, 4.0, 68), (5, 5.0, 100), (9, 2.5, 90)],
    )
    def test_mastery_percentage(self, level, avg, expected):
        assert mastery_percentage(level, avg) == expected

    @pytest.mark.parametrize(
        "days,expected",
        [(0, 100), (-2, 100), (5, 37), (10, 14), (100, 0)],
    )
    def test_estimate_retention(self, days, expected):
        assert estimate_retention(days) == expected

    def test_retention_slower_decay(self):
        assert estimate_retention(5, decay_days=10.0) == 61


class TestItemProgress:
    def test_never_reviewed_word(self, now):
        item = Item(item_id=1, label="abate")
        progress = item_progress(item, None, now)

        assert progress.mastery_percentage == 0
        assert progress.estimated_retention == 0
        assert progress.average_quality == 0.0
        assert progress.interval_preview == {q: 1 for q in Quality}

    def test_reviewed_word(self, now):
        item = Item(item_id=1, label="abate")
        entry = ReviewHistoryEntry(
            timestamp=now - timedelta(days=5),
            quality=4,
            interval_days=1,
            easiness_factor_after=2.5,
        )
        word_state = ReviewState(
            repetition_level=1,
            correct_streak=1,
            next_review_due_at=now - timedelta(days=4),
            review_history=(entry,),
        )

        progress = item_progress(item, word_state, now)

        assert progress.state is word_state
        assert progress.average_quality == 4.0
        assert progress.mastery_percentage == 28
        assert progress.estimated_retention == 37
        assert progress.interval_preview[Quality.PERFECT] == 6
        assert progress.interval_preview[Quality.BLACKOUT] == 1
