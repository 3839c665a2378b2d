"""
Pydantic schemas handed to the presentation layer.

Write and list operations return ORM rows; convert them with
ReviewRead.model_validate(review) before serializing.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from ratekeeper.models.reviews import RatingCategory, ReviewKind


class ReviewRead(BaseModel):
    """A single review as exposed to callers."""
    id: int
    target_id: int
    reviewer_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    kind: ReviewKind
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_serializer("created_at")
    def serialize_created_at(self, value: Optional[datetime]) -> Optional[str]:
        # RFC 3339; SQLite hands back naive datetimes, which are UTC here
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()


class ReviewSummary(BaseModel):
    """Average, count and one page of reviews for a target."""
    target_id: int
    kind: ReviewKind
    average_rating: float
    total_reviews: int
    category: RatingCategory
    page: int = 0
    page_size: int
    reviews: List[ReviewRead] = Field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.total_reviews == 0:
            return 0
        return (self.total_reviews + self.page_size - 1) // self.page_size
