"""
ReviewAggregator - the entry point callers use for review reads and writes.

Reads of average rating and review count are cache-aside over the
AggregateCache with fallback to the ReviewStore. Writes go to the store
first and then invalidate the (kind, target_id) cache entries, so a reader
that sees the invalidation also sees the write. If invalidation fails the
old aggregates live on until the cache TTL expires.

Listings, pages and existence checks go straight to the store.

Used by: gateway command handlers and HTTP routes (outside this package)
"""
from typing import List, Literal, Optional

from ratekeeper.lib.errors import ConstraintError, InvalidRatingError
from ratekeeper.lib.logging import get_logger, log_with_context
from ratekeeper.lib.settings import settings
from ratekeeper.models.reviews import (
    MAX_RATING,
    MIN_RATING,
    RatingCategory,
    Review,
    ReviewKind,
)
from ratekeeper.schemas.reviews import ReviewRead, ReviewSummary
from ratekeeper.services.aggregate_cache import AggregateCache
from ratekeeper.services.review_store import ReviewStore


logger = get_logger(__name__)

WriteStrategy = Literal["upsert", "check_then_act"]


def validate_rating(rating: int) -> int:
    """Return rating unchanged if it is an integer in [1, 5], else raise InvalidRatingError."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRatingError(rating, MIN_RATING, MAX_RATING)
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRatingError(rating, MIN_RATING, MAX_RATING)
    return rating


def normalize_comment(comment: Optional[str]) -> Optional[str]:
    """Strip the comment; empty or whitespace-only comments become None."""
    if comment is None:
        return None
    comment = comment.strip()
    return comment or None


class ReviewAggregator:
    """
    Combines the review store and the aggregate cache.

    Provides:
    - Cached average rating and review count per (target, kind)
    - One-review-per-reviewer submissions with cache invalidation
    - Uncached listings, pages and existence checks
    """

    def __init__(
        self,
        store: ReviewStore,
        cache: AggregateCache,
        write_strategy: Optional[WriteStrategy] = None,
    ):
        """
        Initialize ReviewAggregator.

        Args:
            store: Durable review store
            cache: Aggregate cache
            write_strategy: "upsert" for a single atomic statement, or
                "check_then_act" for exists followed by insert/update
        """
        self.store = store
        self.cache = cache
        self.write_strategy = write_strategy or settings.review_write_strategy
        if self.write_strategy not in ("upsert", "check_then_act"):
            raise ValueError(
                f"Unknown write strategy: {self.write_strategy}. "
                f"Valid options: upsert, check_then_act"
            )

    # ===== Aggregates (cache-aside) =====

    async def get_average_rating(self, target_id: int, kind: ReviewKind) -> float:
        """
        Average rating for the target.

        Returns 0.0 when the target has no reviews; use get_review_count to
        tell "no reviews" apart from a real average.
        """
        cached = await self.cache.get_rating(kind, target_id)
        if cached is not None:
            return cached

        average = await self.store.average(target_id, kind)
        if average is None:
            return 0.0

        await self.cache.put_rating(kind, target_id, average)
        return average

    async def get_review_count(self, target_id: int, kind: ReviewKind) -> int:
        cached = await self.cache.get_count(kind, target_id)
        if cached is not None:
            return cached

        count = await self.store.count(target_id, kind)
        await self.cache.put_count(kind, target_id, count)
        return count

    # ===== Writes =====

    async def submit_or_update_review(
        self,
        target_id: int,
        reviewer_id: int,
        rating: int,
        comment: Optional[str],
        kind: ReviewKind,
    ) -> Review:
        """
        Create the reviewer's review of the target, or replace it if one exists.

        The rating is validated and the comment normalized before any I/O.
        The cache entries for (kind, target_id) are invalidated after every
        successful write, since an update moves the average even though the
        count stays the same.

        Raises:
            InvalidRatingError: rating outside [1, 5]
            InvalidReviewDataError: the store rejected a value, e.g. an id beyond 64 bits
            NotFoundError: the row vanished between the existence check and the update
            ConstraintError: the store rejected the row
            UnavailableError: the store could not be reached
        """
        rating = validate_rating(rating)
        comment = normalize_comment(comment)
        kind = ReviewKind(kind)

        if self.write_strategy == "upsert":
            review = await self.store.upsert(target_id, reviewer_id, rating, comment, kind)
        else:
            review = await self._check_then_act(target_id, reviewer_id, rating, comment, kind)

        await self.cache.invalidate(kind, target_id)

        log_with_context(
            logger,
            "info",
            "Review submitted",
            review_id=review.id,
            target_id=target_id,
            reviewer_id=reviewer_id,
            kind=kind.value,
            rating=rating,
            strategy=self.write_strategy,
        )
        return review

    async def _check_then_act(
        self,
        target_id: int,
        reviewer_id: int,
        rating: int,
        comment: Optional[str],
        kind: ReviewKind,
    ) -> Review:
        if await self.store.exists(target_id, reviewer_id, kind):
            return await self.store.update(target_id, reviewer_id, rating, comment, kind)

        try:
            return await self.store.insert(target_id, reviewer_id, rating, comment, kind)
        except ConstraintError:
            # A concurrent submission for the same triple inserted first
            if not await self.store.exists(target_id, reviewer_id, kind):
                raise
            log_with_context(
                logger,
                "warning",
                "Lost insert race, retrying as update",
                target_id=target_id,
                reviewer_id=reviewer_id,
                kind=kind.value,
            )
            return await self.store.update(target_id, reviewer_id, rating, comment, kind)

    # ===== Passthroughs =====

    async def has_reviewed(self, target_id: int, reviewer_id: int, kind: ReviewKind) -> bool:
        return await self.store.exists(target_id, reviewer_id, kind)

    async def list_reviews(self, target_id: int, kind: ReviewKind) -> List[Review]:
        return await self.store.list(target_id, kind)

    async def page_reviews(
        self,
        target_id: int,
        kind: ReviewKind,
        page: int,
        page_size: Optional[int] = None,
    ) -> List[Review]:
        if page_size is None:
            page_size = settings.default_page_size
        return await self.store.page(target_id, kind, page, page_size)

    async def aclose(self) -> None:
        """Close the cache backend, e.g. the Redis connection pool, on shutdown."""
        await self.cache.close()

    # ===== Summary =====

    async def get_summary(
        self,
        target_id: int,
        kind: ReviewKind,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> ReviewSummary:
        """
        Average, count, rating category and one page of reviews for a target.
        """
        if page_size is None:
            page_size = settings.default_page_size
        average = await self.get_average_rating(target_id, kind)
        total = await self.get_review_count(target_id, kind)
        reviews = await self.page_reviews(target_id, kind, page, page_size)

        return ReviewSummary(
            target_id=target_id,
            kind=ReviewKind(kind),
            average_rating=average,
            total_reviews=total,
            category=RatingCategory.from_average(average),
            page=page,
            page_size=page_size,
            reviews=[ReviewRead.model_validate(review) for review in reviews],
        )
