"""
Spaced repetition router.

Endpoints for vocabulary review:
- Due words for the current learner
- Recording a review outcome
- Progress statistics
- Per-word progress details

Authentication is handled upstream; the learner is identified by the
X-User-Id header.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel

from src.core.exceptions import ConcurrencyConflict, NotFoundError, SchedulerError, ValidationError
from src.core.review_state import ReviewHistoryEntry, ReviewState
from src.study.due_selector import DueItem
from src.study.review_service import ReviewService

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DueWordResponse(CamelModel):
    """A due word summary."""

    word_id: int
    word: str | None = None
    is_new: bool
    repetition_level: int
    next_review_due_at: datetime | None = None

    @classmethod
    def from_due_item(cls, due: DueItem) -> DueWordResponse:
        return cls(
            word_id=due.item.item_id,
            word=due.item.label,
            is_new=due.is_new,
            repetition_level=due.repetition_level,
            next_review_due_at=due.next_review_due_at,
        )


class ReviewHistoryResponse(CamelModel):
    timestamp: datetime
    quality: int
    interval_days: int
    easiness_factor_after: float

    @classmethod
    def from_entry(cls, entry: ReviewHistoryEntry) -> ReviewHistoryResponse:
        return cls(
            timestamp=entry.timestamp,
            quality=entry.quality,
            interval_days=entry.interval_days,
            easiness_factor_after=entry.easiness_factor_after,
        )


class ReviewStateResponse(CamelModel):
    """Review state after a recorded review."""

    word_id: int
    repetition_level: int
    easiness_factor: float
    next_review_due_at: datetime | None
    correct_streak: int
    review_history: List[ReviewHistoryResponse]

    @classmethod
    def from_state(cls, word_id: int, state: ReviewState) -> ReviewStateResponse:
        return cls(
            word_id=word_id,
            repetition_level=state.repetition_level,
            easiness_factor=state.easiness_factor,
            next_review_due_at=state.next_review_due_at,
            correct_streak=state.correct_streak,
            review_history=[ReviewHistoryResponse.from_entry(e) for e in state.review_history],
        )


class ReviewRequest(CamelModel):
    """Body for recording a review."""

    word_id: int = Field(..., description="Word being reviewed")
    quality: StrictInt = Field(..., description="Recall quality 0-5")
    now: datetime | None = Field(None, description="Review time (server time when omitted)")


class StatsResponse(CamelModel):
    total_words: int
    mastered_count: int
    learning_count: int
    new_count: int
    average_easiness_factor: float
    current_streak: int
    streaks: Dict[str, int]
    total_reviews: int


class WordProgressResponse(CamelModel):
    word_id: int
    word: str | None = None
    mastery_percentage: int
    average_quality: float
    estimated_retention: int
    interval_preview: Dict[int, int]
    state: ReviewStateResponse | None = None


# ========================================
# Dependencies
# ========================================


def get_review_service() -> Generator[ReviewService, None, None]:
    """Review service bound to a transactional database session."""
    from src.db.database import session_scope
    from src.db.repository import SqlAlchemyReviewStateRepository

    with session_scope() as session:
        yield ReviewService(SqlAlchemyReviewStateRepository(session))


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User not authenticated")
    return x_user_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_response(exc: SchedulerError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail={"error": str(exc), "field": exc.field})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail={"error": str(exc)})
    if isinstance(exc, ConcurrencyConflict):
        return HTTPException(status_code=409, detail={"error": str(exc)})
    return HTTPException(status_code=500, detail={"error": str(exc)})


# ========================================
# Spaced Repetition Endpoints
# ========================================


@router.get("/due-words", response_model=List[DueWordResponse], summary="Get words due for review")
def get_due_words(
    limit: int | None = Query(None, description="Maximum words to return"),
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> List[DueWordResponse]:
    """
    Get words due for review, new words first, then weakest first.
    """
    try:
        due = service.fetch_due(user_id, _utcnow(), limit)
    except ValidationError as exc:
        raise _error_response(exc)
    return [DueWordResponse.from_due_item(d) for d in due]


@router.post("/update-review", response_model=ReviewStateResponse, summary="Record a review")
def update_review(
    request: ReviewRequest,
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ReviewStateResponse:
    """
    Record a review outcome and return the rescheduled state.

    Errors:
    - 400: quality outside 0-5 or malformed timestamp
    - 404: unknown word
    - 409: concurrent updates kept winning; retry the request
    """
    now = request.now or _utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    try:
        state = service.record_review(user_id, request.word_id, request.quality, now)
    except (ValidationError, NotFoundError, ConcurrencyConflict) as exc:
        logger.info(f"Review rejected for user={user_id} word={request.word_id}: {exc}")
        raise _error_response(exc)
    return ReviewStateResponse.from_state(request.word_id, state)


@router.get("/stats", response_model=StatsResponse, summary="Get spaced repetition statistics")
def get_stats(
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> StatsResponse:
    """
    Get mastered / learning / new counts, average easiness and streaks.
    """
    stats = service.fetch_stats(user_id)
    return StatsResponse(
        total_words=stats.total_items,
        mastered_count=stats.mastered_count,
        learning_count=stats.learning_count,
        new_count=stats.new_count,
        average_easiness_factor=stats.average_easiness_factor,
        current_streak=stats.current_streak,
        streaks={"current": stats.current_streak},
        total_reviews=stats.total_reviews,
    )


@router.get(
    "/words/{word_id}/progress",
    response_model=WordProgressResponse,
    summary="Get progress for one word",
)
def get_word_progress(
    word_id: int,
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> WordProgressResponse:
    """
    Get mastery, retention estimate and the interval each rating would give.
    """
    try:
        progress = service.fetch_item_progress(user_id, word_id, _utcnow())
    except NotFoundError as exc:
        raise _error_response(exc)
    return WordProgressResponse(
        word_id=word_id,
        word=progress.item.label,
        mastery_percentage=progress.mastery_percentage,
        average_quality=progress.average_quality,
        estimated_retention=progress.estimated_retention,
        interval_preview={int(q): days for q, days in progress.interval_preview.items()},
        state=ReviewStateResponse.from_state(word_id, progress.state) if progress.state else None,
    )
