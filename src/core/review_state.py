"""
Review-State Model.

The per-(learner, word) scheduling record used by the SM-2 scheduler,
plus the quality scale and the catalog item reference.

Invariants after every transition:
- easiness_factor >= 1.30
- repetition_level >= 0, reset to 0 on a failed review
- correct_streak counts consecutive successful reviews
- review_history only ever grows by one entry per review
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Hashable

from src.core.exceptions import ValidationError

DEFAULT_EASINESS = 2.5
MINIMUM_EASINESS = 1.3
SUCCESS_THRESHOLD = 3


class Quality(IntEnum):
    """
    SM-2 recall quality scale (0-5).

    0-2 are failed recalls, 3-5 are successful recalls.
    """

    BLACKOUT = 0  # Complete blackout
    INCORRECT = 1  # Wrong, but recognised once shown
    INCORRECT_FAMILIAR = 2  # Wrong, but the answer felt familiar
    DIFFICULT = 3  # Correct with serious difficulty
    HESITANT = 4  # Correct after hesitation
    PERFECT = 5  # Instant recall

    @property
    def is_success(self) -> bool:
        return self >= SUCCESS_THRESHOLD

    @classmethod
    def parse(cls, value: Any) -> Quality:
        """
        Validate a raw rating and convert it to a Quality.

        Only integers 0-5 are accepted. Booleans and floats are rejected
        rather than coerced.

        Raises:
            ValidationError: If the value is not an integer in range
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"quality must be an integer between 0 and 5, got {value!r}",
                field="quality",
                value=value,
            )
        if not 0 <= value <= 5:
            raise ValidationError(
                f"quality must be between 0 and 5, got {value}",
                field="quality",
                value=value,
            )
        return cls(value)


def ensure_timestamp(value: Any, field_name: str = "now") -> datetime:
    """
    Validate a caller-supplied timestamp.

    Only timezone-aware datetimes are accepted so that due comparisons are
    never made between naive and aware values.
    """
    if not isinstance(value, datetime):
        raise ValidationError(
            f"{field_name} must be a datetime, got {type(value).__name__}",
            field=field_name,
            value=value,
        )
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(
            f"{field_name} must be timezone-aware",
            field=field_name,
            value=value,
        )
    return value


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 string (or datetime) from storage. Naive values are taken as UTC."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(
                f"{field_name} is not an ISO-8601 timestamp: {value!r}",
                field=field_name,
                value=value,
            ) from e
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return ensure_timestamp(value, field_name)


def _check_count(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field_name} must be an integer, got {value!r}", field=field_name, value=value
        )
    if value < 0:
        raise ValidationError(f"{field_name} must be >= 0", field=field_name, value=value)


@dataclass(frozen=True)
class ReviewHistoryEntry:
    """A single processed review. Entries are never modified once appended."""

    timestamp: datetime
    quality: int
    interval_days: int
    easiness_factor_after: float

    def __post_init__(self) -> None:
        ensure_timestamp(self.timestamp, "review_history.timestamp")

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "quality": int(self.quality),
            "interval_days": self.interval_days,
            "easiness_factor_after": self.easiness_factor_after,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewHistoryEntry:
        try:
            return cls(
                timestamp=parse_timestamp(data["timestamp"], "review_history.timestamp"),
                quality=int(Quality.parse(data["quality"])),
                interval_days=int(data["interval_days"]),
                easiness_factor_after=float(data["easiness_factor_after"]),
            )
        except KeyError as e:
            raise ValidationError(
                f"review history entry is missing {e.args[0]!r}",
                field="review_history",
                value=data,
            ) from e


@dataclass(frozen=True)
class ReviewState:
    """
    Scheduling record for one learner and one word.

    Instances are immutable; the scheduler returns a new state for every
    review instead of changing the prior one.
    """

    repetition_level: int = 0
    easiness_factor: float = DEFAULT_EASINESS
    next_review_due_at: datetime | None = None
    correct_streak: int = 0
    review_history: tuple[ReviewHistoryEntry, ...] = ()

    def __post_init__(self) -> None:
        _check_count(self.repetition_level, "repetition_level")
        _check_count(self.correct_streak, "correct_streak")
        if self.easiness_factor < MINIMUM_EASINESS:
            raise ValidationError(
                f"easiness_factor must be >= {MINIMUM_EASINESS}",
                field="easiness_factor",
                value=self.easiness_factor,
            )
        if self.next_review_due_at is not None:
            ensure_timestamp(self.next_review_due_at, "next_review_due_at")
        if not isinstance(self.review_history, tuple):
            object.__setattr__(self, "review_history", tuple(self.review_history))

    @classmethod
    def new(cls, easiness_factor: float = DEFAULT_EASINESS) -> ReviewState:
        """Seed state for a word that has never been reviewed."""
        return cls(easiness_factor=easiness_factor)

    @property
    def review_count(self) -> int:
        return len(self.review_history)

    @property
    def last_review(self) -> ReviewHistoryEntry | None:
        return self.review_history[-1] if self.review_history else None

    @property
    def last_interval_days(self) -> int | None:
        last = self.last_review
        return last.interval_days if last else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "repetition_level": self.repetition_level,
            "easiness_factor": self.easiness_factor,
            "next_review_due_at": (
                self.next_review_due_at.isoformat() if self.next_review_due_at else None
            ),
            "correct_streak": self.correct_streak,
            "review_history": [entry.to_dict() for entry in self.review_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewState:
        due = data.get("next_review_due_at")
        return cls(
            repetition_level=int(data.get("repetition_level", 0)),
            easiness_factor=float(data.get("easiness_factor", DEFAULT_EASINESS)),
            next_review_due_at=parse_timestamp(due, "next_review_due_at") if due else None,
            correct_streak=int(data.get("correct_streak", 0)),
            review_history=tuple(
                ReviewHistoryEntry.from_dict(entry) for entry in data.get("review_history", [])
            ),
        )


@dataclass(frozen=True)
class Item:
    """
    A word from the external catalog.

    sort_key is the curriculum position (day, order) and is only used to
    break ties when ordering due words.
    """

    item_id: Hashable
    sort_key: tuple = field(default=())
    label: str | None = None
