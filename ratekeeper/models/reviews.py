"""
Review model - ratings and comments left by one user about another user or a server.
"""
from datetime import datetime
from typing import Optional
import enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ratekeeper.lib.db import Base
from ratekeeper.lib.errors import InvalidReviewKindError


MIN_RATING = 1
MAX_RATING = 5


class ReviewKind(str, enum.Enum):
    """What kind of target a review is about."""
    USER = "user"
    SERVER = "server"

    @classmethod
    def parse(cls, value: str) -> "ReviewKind":
        """Parse a kind name such as "user" or "server" (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidReviewKindError(value) from None


class RatingCategory(str, enum.Enum):
    """Coarse label for an average rating."""
    UNRATED = "Unrated"
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    VERY_GOOD = "Very Good"
    EXCELLENT = "Excellent"

    @classmethod
    def from_average(cls, average: float) -> "RatingCategory":
        # 0.0 is what the aggregator reports for a target with no reviews
        if average == 0.0:
            return cls.UNRATED
        if average <= 1.0:
            return cls.POOR
        if average <= 2.0:
            return cls.FAIR
        if average <= 3.0:
            return cls.GOOD
        if average <= 4.0:
            return cls.VERY_GOOD
        return cls.EXCELLENT


class Review(Base):
    """
    Review entity - at most one per (target_id, reviewer_id, kind).
    """
    __tablename__ = "reviews"

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Who is reviewed, and by whom
    target_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reviewer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Rating (1-5 scale)
    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Comment (absent rather than empty)
    comment: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    kind: Mapped[ReviewKind] = mapped_column(
        SQLEnum(
            ReviewKind,
            name="review_type",
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
    )

    # Refreshed on every re-review
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}",
            name="review_rating_range",
        ),
        UniqueConstraint(
            "target_id",
            "reviewer_id",
            "kind",
            name="uq_reviews_target_reviewer_kind",
        ),
        Index("ix_reviews_target_kind", "target_id", "kind"),
    )

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, target_id={self.target_id}, "
            f"reviewer_id={self.reviewer_id}, kind={self.kind}, rating={self.rating})>"
        )
