"""API routers for vocab-srs."""

from src.api.routers import spaced_repetition_router

__all__ = [
    "spaced_repetition_router",
]
