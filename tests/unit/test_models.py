"""Tests for review kinds, rating categories and review schemas."""
from datetime import datetime, timezone

import pytest
from sqlalchemy import Text

from ratekeeper.lib.errors import InvalidReviewKindError
from ratekeeper.models.reviews import RatingCategory, Review, ReviewKind
from ratekeeper.schemas.reviews import ReviewRead, ReviewSummary


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw,expected",
    [
        ("user", ReviewKind.USER),
        ("server", ReviewKind.SERVER),
        (" Server ", ReviewKind.SERVER),
        (ReviewKind.USER, ReviewKind.USER),
    ],
)
def test_review_kind_parse(raw, expected):
    assert ReviewKind.parse(raw) is expected


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["guild", "", "users"])
def test_review_kind_parse_rejects_unknown(raw):
    with pytest.raises(InvalidReviewKindError) as exc_info:
        ReviewKind.parse(raw)
    assert exc_info.value.status_code == 400


@pytest.mark.unit
@pytest.mark.parametrize(
    "average,category",
    [
        (0.0, RatingCategory.UNRATED),
        (1.0, RatingCategory.POOR),
        (1.5, RatingCategory.FAIR),
        (2.0, RatingCategory.FAIR),
        (3.0, RatingCategory.GOOD),
        (3.5, RatingCategory.VERY_GOOD),
        (4.0, RatingCategory.VERY_GOOD),
        (4.01, RatingCategory.EXCELLENT),
        (5.0, RatingCategory.EXCELLENT),
    ],
)
def test_rating_category_from_average(average, category):
    assert RatingCategory.from_average(average) is category


@pytest.mark.unit
def test_rating_category_display_names():
    assert RatingCategory.VERY_GOOD.value == "Very Good"
    assert RatingCategory.UNRATED.value == "Unrated"


@pytest.mark.unit
def test_review_read_from_orm_object():
    review = Review(
        id=3,
        target_id=100,
        reviewer_id=200,
        rating=4,
        comment=None,
        kind=ReviewKind.SERVER,
        created_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc),
    )

    data = ReviewRead.model_validate(review).model_dump(mode="json")

    assert data == {
        "id": 3,
        "target_id": 100,
        "reviewer_id": 200,
        "rating": 4,
        "comment": None,
        "kind": "server",
        "created_at": "2026-03-01T09:30:00+00:00",
    }


@pytest.mark.unit
def test_review_read_treats_naive_timestamps_as_utc():
    read = ReviewRead(
        id=1,
        target_id=1,
        reviewer_id=2,
        rating=5,
        kind=ReviewKind.USER,
        created_at=datetime(2026, 3, 1, 9, 30),
    )

    assert read.model_dump(mode="json")["created_at"] == "2026-03-01T09:30:00+00:00"


@pytest.mark.unit
@pytest.mark.parametrize("total,pages", [(0, 0), (1, 1), (5, 1), (6, 2), (11, 3)])
def test_summary_total_pages(total, pages):
    summary = ReviewSummary(
        target_id=1,
        kind=ReviewKind.USER,
        average_rating=0.0 if total == 0 else 3.0,
        total_reviews=total,
        category=RatingCategory.UNRATED,
        page_size=5,
    )
    assert summary.total_pages == pages


@pytest.mark.unit
def test_comment_column_is_unbounded_text():
    column = Review.__table__.c.comment

    assert isinstance(column.type, Text)
    assert column.type.length is None
    assert column.nullable
