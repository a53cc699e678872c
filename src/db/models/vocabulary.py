"""
Vocabulary Models.

SQLAlchemy models for the word catalog and per-learner review state:
- Word: catalog entry, ordered by curriculum day then order
- WordProgress: SM-2 scheduling state for one learner and one word
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

HistoryJSON = JSON().with_variant(JSONB(), "postgresql")


class Word(Base):
    """A vocabulary word in the curriculum."""

    __tablename__ = "words"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    word: Mapped[str] = mapped_column(Text, nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False)
    example: Mapped[str] = mapped_column(Text, nullable=False, default="")
    pronunciation: Mapped[str | None] = mapped_column(Text)
    part_of_speech: Mapped[str | None] = mapped_column(Text)

    # Curriculum position (tie-break for due ordering)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    progress: Mapped[list[WordProgress]] = relationship(back_populates="word")

    __table_args__ = (Index("idx_words_day_order", "day", "order"),)

    def __repr__(self) -> str:
        return f"<Word id={self.id} word={self.word!r} day={self.day} order={self.order}>"


class WordProgress(Base):
    """
    SM-2 review state per learner per word.

    `version` is the optimistic-concurrency token: every write must name
    the version it read, and bumps it by one.
    """

    __tablename__ = "word_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    word_id: Mapped[int] = mapped_column(
        ForeignKey("words.id", ondelete="CASCADE"), nullable=False
    )

    # Scheduling state
    repetition_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    easiness_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    next_review_due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    correct_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_history: Mapped[list] = mapped_column(HistoryJSON, nullable=False, default=list)

    # Concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    word: Mapped[Word] = relationship(back_populates="progress")

    __table_args__ = (
        UniqueConstraint("user_id", "word_id", name="uq_word_progress_user_word"),
        Index("idx_word_progress_due", "user_id", "next_review_due_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WordProgress user={self.user_id} word={self.word_id} "
            f"level={self.repetition_level} version={self.version}>"
        )
