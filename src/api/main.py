"""
FastAPI application for vocab-srs.

Provides REST API for:
- Words due for review
- Recording review outcomes (SM-2 rescheduling)
- Spaced repetition statistics
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.api.routers import spaced_repetition_router

settings = get_settings()


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        from src.db.database import get_engine

        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    from src.db.database import init_db

    # Startup
    logger.info("Starting vocab-srs service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down vocab-srs service...")


app = FastAPI(
    title="Vocab SRS",
    description="""
    Spaced repetition scheduling for vocabulary learning.

    ## Features

    - **Due Words**: New words first, then the weakest reviewed words
    - **Reviews**: SM-2 rescheduling from a 0-5 recall quality
    - **Stats**: Mastered / learning / new counts, easiness and streaks
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "vocab-srs",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()

    result = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"database": db_status},
        "config": {
            "mastery_threshold": settings.srs_mastery_threshold,
            "maximum_interval_days": settings.srs_maximum_interval_days,
            "default_due_limit": settings.srs_default_due_limit,
        },
    }
    if db_error:
        result["errors"] = {"database": db_error}

    return result


# ========================================
# Mount routers
# ========================================

app.include_router(
    spaced_repetition_router.router,
    prefix="/api/spaced-repetition",
    tags=["Spaced Repetition"],
)
