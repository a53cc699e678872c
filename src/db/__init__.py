"""Persistence: engine/session setup, models and the review-state repository."""
