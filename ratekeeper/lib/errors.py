"""
Review error taxonomy.

Every error the core surfaces derives from AppException and carries an
HTTP-style status code so a dispatcher can tell "your input was invalid"
(4xx) apart from "we could not complete this right now" (5xx). Cache
failures never appear here; they are absorbed inside the aggregate cache.
"""
from http import HTTPStatus
from typing import Optional, Dict, Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = int(status_code)
        self.details = details or {}
        super().__init__(self.message)


class InvalidRatingError(AppException):
    """Rating outside the accepted 1-5 range."""

    def __init__(self, rating: Any, minimum: int = 1, maximum: int = 5):
        super().__init__(
            message=f"Rating must be between {minimum} and {maximum}, got {rating!r}",
            status_code=HTTPStatus.BAD_REQUEST,
            details={"rating": rating, "minimum": minimum, "maximum": maximum},
        )


class InvalidReviewKindError(AppException):
    """Unknown review kind name."""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid review type: {value!r}",
            status_code=HTTPStatus.BAD_REQUEST,
            details={"review_type": value},
        )


class InvalidReviewDataError(AppException):
    """The store rejected a value as malformed or out of range for its column."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=HTTPStatus.BAD_REQUEST,
            details=details,
        )


class NotFoundError(AppException):
    """No review matches the (target, reviewer, kind) triple."""

    def __init__(self, message: str = "Review not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=HTTPStatus.NOT_FOUND,
            details=details,
        )


class ConstraintError(AppException):
    """The durable store rejected a row (range check or uniqueness)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=HTTPStatus.CONFLICT,
            details=details,
        )


class UnavailableError(AppException):
    """The durable store could not be reached or timed out."""

    def __init__(self, message: str = "Review store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            details=details,
        )


def is_client_error(exc: BaseException) -> bool:
    """True only for errors caused by the caller's input."""
    return isinstance(exc, (InvalidRatingError, InvalidReviewKindError, InvalidReviewDataError))
