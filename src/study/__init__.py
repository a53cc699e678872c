"""
Vocabulary Spaced Repetition Module.

Provides:
- SM-2 scheduling of individual reviews
- Due-word selection and ordering
- Progress statistics and per-word analytics
- The review service used by the API and CLI
"""

from src.study.due_selector import DueItem, is_due, select_due, summarize_due
from src.study.progress import ItemProgress, ProgressStats, aggregate, item_progress
from src.study.scheduler import SchedulerConfig, SM2Scheduler, compute_next_state

__all__ = [
    "SM2Scheduler",
    "SchedulerConfig",
    "compute_next_state",
    "DueItem",
    "is_due",
    "select_due",
    "summarize_due",
    "ProgressStats",
    "ItemProgress",
    "aggregate",
    "item_progress",
]
