"""
Review-State Repository - the persistence boundary for the scheduler.

Loads and stores per-learner review states with optimistic concurrency:
every stored state carries a version, and a write must name the version it
was computed from. A stale write raises ConcurrencyConflict instead of
overwriting a newer state; the caller re-runs its read-compute-write cycle.

Implementations:
- SqlAlchemyReviewStateRepository: words / word_progress tables
- InMemoryReviewStateRepository: process-local, for tests and offline use
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Hashable, Protocol

from loguru import logger
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.exceptions import ConcurrencyConflict, NotFoundError
from src.core.review_state import Item, ReviewState
from src.db.models import Word, WordProgress

# Version token for a (learner, word) pair that has no stored state yet
ABSENT_VERSION = 0


@dataclass(frozen=True)
class VersionedState:
    """A stored state together with its concurrency token."""

    state: ReviewState | None
    version: int = ABSENT_VERSION


class ReviewStateRepository(Protocol):
    """Contract the review service relies on."""

    def get_item(self, item_id: Hashable) -> Item: ...

    def get_state(self, user_id: str, item_id: Hashable) -> ReviewState | None: ...

    def get_versioned_state(self, user_id: str, item_id: Hashable) -> VersionedState: ...

    def put_state(
        self,
        user_id: str,
        item_id: Hashable,
        state: ReviewState,
        expected_version: int | None = None,
    ) -> int: ...

    def list_items_and_states(self, user_id: str) -> list[tuple[Item, ReviewState | None]]: ...


# =============================================================================
# SQLAlchemy implementation
# =============================================================================


def word_to_item(word: Word) -> Item:
    return Item(item_id=word.id, sort_key=(word.day, word.order), label=word.word)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def progress_to_state(row: WordProgress) -> ReviewState:
    return ReviewState.from_dict(
        {
            "repetition_level": row.repetition_level,
            "easiness_factor": row.easiness_factor,
            "next_review_due_at": _as_utc(row.next_review_due_at),
            "correct_streak": row.correct_streak,
            "review_history": row.review_history or [],
        }
    )


def _state_columns(state: ReviewState) -> dict:
    last = state.last_review
    return {
        "repetition_level": state.repetition_level,
        "easiness_factor": state.easiness_factor,
        "next_review_due_at": state.next_review_due_at,
        "correct_streak": state.correct_streak,
        "review_history": [entry.to_dict() for entry in state.review_history],
        "last_practiced_at": last.timestamp if last else None,
    }


class SqlAlchemyReviewStateRepository:
    """
    Review states stored in the word_progress table.

    The repository never commits; the surrounding session scope owns the
    transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_item(self, item_id: Hashable) -> Item:
        word = self.session.get(Word, item_id)
        if word is None:
            raise NotFoundError(item_id)
        return word_to_item(word)

    def list_items(self) -> list[Item]:
        words = self.session.scalars(select(Word).order_by(Word.day, Word.order, Word.id))
        return [word_to_item(word) for word in words]

    def _progress_query(self, user_id: str, item_id: Hashable):
        return (
            select(WordProgress)
            .where(and_(WordProgress.user_id == user_id, WordProgress.word_id == item_id))
            .execution_options(populate_existing=True)
        )

    def get_versioned_state(self, user_id: str, item_id: Hashable) -> VersionedState:
        row = self.session.scalars(self._progress_query(user_id, item_id)).first()
        if row is None:
            return VersionedState(state=None)
        return VersionedState(state=progress_to_state(row), version=row.version)

    def get_state(self, user_id: str, item_id: Hashable) -> ReviewState | None:
        return self.get_versioned_state(user_id, item_id).state

    def put_state(
        self,
        user_id: str,
        item_id: Hashable,
        state: ReviewState,
        expected_version: int | None = None,
    ) -> int:
        """
        Store a state and return its new version.

        With expected_version=None the write is unconditional. Otherwise the
        stored version must match exactly (ABSENT_VERSION for a first write).

        Raises:
            ConcurrencyConflict: If the stored version differs
        """
        if expected_version is None:
            expected_version = self.get_versioned_state(user_id, item_id).version

        if expected_version == ABSENT_VERSION:
            return self._insert(user_id, item_id, state)

        result = self.session.execute(
            update(WordProgress)
            .where(
                and_(
                    WordProgress.user_id == user_id,
                    WordProgress.word_id == item_id,
                    WordProgress.version == expected_version,
                )
            )
            .values(version=expected_version + 1, **_state_columns(state))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrencyConflict(user_id, item_id, expected_version)

        logger.debug(f"Stored review state user={user_id} word={item_id} v{expected_version + 1}")
        return expected_version + 1

    def _insert(self, user_id: str, item_id: Hashable, state: ReviewState) -> int:
        exists = self.session.scalar(
            select(WordProgress.id).where(
                and_(WordProgress.user_id == user_id, WordProgress.word_id == item_id)
            )
        )
        if exists is not None:
            raise ConcurrencyConflict(user_id, item_id, ABSENT_VERSION)

        row = WordProgress(user_id=user_id, word_id=item_id, version=1, **_state_columns(state))
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush([row])
        except IntegrityError as e:
            raise ConcurrencyConflict(user_id, item_id, ABSENT_VERSION) from e

        logger.debug(f"Created review state user={user_id} word={item_id}")
        return 1

    def list_items_and_states(self, user_id: str) -> list[tuple[Item, ReviewState | None]]:
        stmt = (
            select(Word, WordProgress)
            .outerjoin(
                WordProgress,
                and_(WordProgress.word_id == Word.id, WordProgress.user_id == user_id),
            )
            .order_by(Word.day, Word.order, Word.id)
            .execution_options(populate_existing=True)
        )
        return [
            (word_to_item(word), progress_to_state(progress) if progress else None)
            for word, progress in self.session.execute(stmt)
        ]


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryReviewStateRepository:
    """Same contract as the SQLAlchemy repository, backed by dictionaries."""

    def __init__(self, items: Iterable[Item] = ()):
        self._items: dict[Hashable, Item] = {}
        self._states: dict[tuple[str, Hashable], VersionedState] = {}
        for item in items:
            self.add_item(item)

    def add_item(self, item: Item) -> None:
        self._items[item.item_id] = item

    def get_item(self, item_id: Hashable) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFoundError(item_id) from None

    def get_versioned_state(self, user_id: str, item_id: Hashable) -> VersionedState:
        return self._states.get((user_id, item_id), VersionedState(state=None))

    def get_state(self, user_id: str, item_id: Hashable) -> ReviewState | None:
        return self.get_versioned_state(user_id, item_id).state

    def put_state(
        self,
        user_id: str,
        item_id: Hashable,
        state: ReviewState,
        expected_version: int | None = None,
    ) -> int:
        current = self.get_versioned_state(user_id, item_id).version
        if expected_version is not None and expected_version != current:
            raise ConcurrencyConflict(user_id, item_id, expected_version)
        self._states[(user_id, item_id)] = VersionedState(state=state, version=current + 1)
        return current + 1

    def list_items_and_states(self, user_id: str) -> list[tuple[Item, ReviewState | None]]:
        return [(item, self.get_state(user_id, item.item_id)) for item in self._items.values()]
