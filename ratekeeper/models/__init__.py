"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from ratekeeper.models.reviews import (
    MAX_RATING,
    MIN_RATING,
    RatingCategory,
    Review,
    ReviewKind,
)

__all__ = [
    "MAX_RATING",
    "MIN_RATING",
    "RatingCategory",
    "Review",
    "ReviewKind",
]
