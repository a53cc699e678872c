# SQLAlchemy models
from .base import Base
from .vocabulary import Word, WordProgress

__all__ = [
    # Base
    "Base",
    # Vocabulary
    "Word",
    "WordProgress",
]
