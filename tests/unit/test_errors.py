"""
Tests for the review error taxonomy.
"""
import pytest

from ratekeeper.lib.errors import (
    AppException,
    ConstraintError,
    InvalidRatingError,
    InvalidReviewDataError,
    InvalidReviewKindError,
    NotFoundError,
    UnavailableError,
    is_client_error,
)


@pytest.mark.unit
def test_app_exception_creation():
    exc = AppException(
        message="Test error",
        status_code=500,
        details={"key": "value"},
    )

    assert exc.message == "Test error"
    assert exc.status_code == 500
    assert exc.details == {"key": "value"}
    assert str(exc) == "Test error"


@pytest.mark.unit
def test_invalid_rating_error():
    exc = InvalidRatingError(7)

    assert exc.status_code == 400
    assert exc.details == {"rating": 7, "minimum": 1, "maximum": 5}
    assert "between 1 and 5" in exc.message


@pytest.mark.unit
def test_not_found_error_defaults():
    exc = NotFoundError()

    assert exc.status_code == 404
    assert exc.message == "Review not found"
    assert exc.details == {}


@pytest.mark.unit
def test_constraint_and_unavailable_status_codes():
    assert ConstraintError("dup").status_code == 409
    assert InvalidReviewDataError("bad value").status_code == 400
    assert UnavailableError().status_code == 503


@pytest.mark.unit
@pytest.mark.parametrize(
    "exc,client",
    [
        (InvalidRatingError(0), True),
        (InvalidReviewKindError("guild"), True),
        (InvalidReviewDataError("bad value"), True),
        (NotFoundError(), False),
        (ConstraintError("dup"), False),
        (UnavailableError(), False),
        (RuntimeError("boom"), False),
    ],
)
def test_is_client_error(exc, client):
    assert is_client_error(exc) is client
