"""
ReviewStore - durable storage of review rows, the source of truth.

Each public method runs in its own short transaction. Nothing here touches
the aggregate cache; invalidation is the caller's job.

Multi-row reads are ordered newest first (created_at DESC, then id DESC) so
pages stay stable when several reviews share a timestamp.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, List, Optional

from sqlalchemy import Float, Select, cast, exists, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import (
    DataError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratekeeper.lib.db import SessionLocal, session_scope
from ratekeeper.lib.errors import (
    AppException,
    ConstraintError,
    InvalidReviewDataError,
    NotFoundError,
    UnavailableError,
)
from ratekeeper.lib.logging import get_logger, log_with_context
from ratekeeper.lib.metrics import MetricsCollector, get_metrics_collector
from ratekeeper.models.reviews import Review, ReviewKind


logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReviewStore:
    """
    Durable CRUD over Review rows, queried by (target_id, kind) or by
    (target_id, reviewer_id, kind).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize ReviewStore.

        Args:
            session_factory: Async session factory bound to the review database
            clock: Source of created_at timestamps
            metrics: Counter collector (defaults to the global one)
        """
        self.session_factory = session_factory
        self.clock = clock
        self.metrics = metrics or get_metrics_collector()

    # ===== Writes =====

    async def insert(
        self,
        target_id: int,
        reviewer_id: int,
        rating: int,
        comment: Optional[str],
        kind: ReviewKind,
    ) -> Review:
        """
        Insert a new review.

        Raises:
            ConstraintError: rating out of range or the triple already reviewed
            UnavailableError: store unreachable or timed out
        """
        async with self._transaction("insert", target_id=target_id, reviewer_id=reviewer_id, kind=kind) as session:
            review = Review(
                target_id=target_id,
                reviewer_id=reviewer_id,
                rating=rating,
                comment=comment,
                kind=kind,
                created_at=self.clock(),
            )
            session.add(review)
            await session.flush()

        self.metrics.increment_review_writes(kind=kind.value, operation="insert")
        log_with_context(
            logger,
            "info",
            "Review inserted",
            review_id=review.id,
            target_id=target_id,
            reviewer_id=reviewer_id,
            kind=kind.value,
            rating=rating,
        )
        return review

    async def update(
        self,
        target_id: int,
        reviewer_id: int,
        rating: int,
        comment: Optional[str],
        kind: ReviewKind,
    ) -> Review:
        """
        Overwrite rating and comment of the existing review and reset created_at.

        Raises:
            NotFoundError: no review for (target_id, reviewer_id, kind)
            ConstraintError: rating rejected by the store
            UnavailableError: store unreachable or timed out
        """
        async with self._transaction("update", target_id=target_id, reviewer_id=reviewer_id, kind=kind) as session:
            review = await session.scalar(
                select(Review)
                .where(
                    Review.target_id == target_id,
                    Review.reviewer_id == reviewer_id,
                    Review.kind == kind,
                )
                .with_for_update()
            )
            if review is None:
                raise NotFoundError(
                    "No review to update",
                    details={
                        "target_id": target_id,
                        "reviewer_id": reviewer_id,
                        "kind": kind.value,
                    },
                )

            review.rating = rating
            review.comment = comment
            review.created_at = self.clock()
            await session.flush()

        self.metrics.increment_review_writes(kind=kind.value, operation="update")
        log_with_context(
            logger,
            "info",
            "Review updated",
            review_id=review.id,
            target_id=target_id,
            reviewer_id=reviewer_id,
            kind=kind.value,
            rating=rating,
        )
        return review

    async def upsert(
        self,
        target_id: int,
        reviewer_id: int,
        rating: int,
        comment: Optional[str],
        kind: ReviewKind,
    ) -> Review:
        """
        Insert the review, or overwrite the existing one for the same
        (target_id, reviewer_id, kind), in a single statement.

        An overwritten review keeps its id; rating, comment and created_at
        take the new values.
        """
        async with self._transaction("upsert", target_id=target_id, reviewer_id=reviewer_id, kind=kind) as session:
            dialect = session.get_bind().dialect.name
            dialect_insert = _UPSERT_DIALECTS.get(dialect)
            if dialect_insert is None:
                raise UnavailableError(
                    f"Upsert is not supported on {dialect}",
                    details={"operation": "upsert", "dialect": dialect},
                )

            stmt = dialect_insert(Review).values(
                target_id=target_id,
                reviewer_id=reviewer_id,
                rating=rating,
                comment=comment,
                kind=kind,
                created_at=self.clock(),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Review.target_id, Review.reviewer_id, Review.kind],
                set_={
                    "rating": stmt.excluded.rating,
                    "comment": stmt.excluded.comment,
                    "created_at": stmt.excluded.created_at,
                },
            ).returning(Review)

            result = await session.scalars(
                stmt,
                execution_options={"populate_existing": True},
            )
            review = result.one()

        self.metrics.increment_review_writes(kind=kind.value, operation="upsert")
        log_with_context(
            logger,
            "info",
            "Review upserted",
            review_id=review.id,
            target_id=target_id,
            reviewer_id=reviewer_id,
            kind=kind.value,
            rating=rating,
        )
        return review

    # ===== Reads =====

    async def exists(self, target_id: int, reviewer_id: int, kind: ReviewKind) -> bool:
        stmt = select(
            exists().where(
                Review.target_id == target_id,
                Review.reviewer_id == reviewer_id,
                Review.kind == kind,
            )
        )
        async with self._transaction("exists", target_id=target_id, reviewer_id=reviewer_id, kind=kind) as session:
            return bool(await session.scalar(stmt))

    async def average(self, target_id: int, kind: ReviewKind) -> Optional[float]:
        """Average rating, or None when the target has no reviews."""
        stmt = select(func.avg(cast(Review.rating, Float))).where(
            Review.target_id == target_id,
            Review.kind == kind,
        )
        async with self._transaction("average", target_id=target_id, kind=kind) as session:
            value = await session.scalar(stmt)
        return float(value) if value is not None else None

    async def count(self, target_id: int, kind: ReviewKind) -> int:
        stmt = select(func.count(Review.id)).where(
            Review.target_id == target_id,
            Review.kind == kind,
        )
        async with self._transaction("count", target_id=target_id, kind=kind) as session:
            value = await session.scalar(stmt)
        return int(value or 0)

    async def list(self, target_id: int, kind: ReviewKind) -> List[Review]:
        """All reviews for the target, newest first."""
        async with self._transaction("list", target_id=target_id, kind=kind) as session:
            result = await session.scalars(self._newest_first(target_id, kind))
            return list(result.all())

    async def page(
        self,
        target_id: int,
        kind: ReviewKind,
        page_index: int,
        page_size: int,
    ) -> List[Review]:
        """
        One page of reviews, newest first.

        Args:
            page_index: Zero-based page number; pages past the end come back empty
            page_size: Reviews per page, must be positive

        Raises:
            ValueError: negative page_index or non-positive page_size
        """
        if page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {page_index}")
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")

        stmt = (
            self._newest_first(target_id, kind)
            .offset(page_index * page_size)
            .limit(page_size)
        )
        async with self._transaction("page", target_id=target_id, kind=kind) as session:
            result = await session.scalars(stmt)
            return list(result.all())

    # ===== Helpers =====

    @staticmethod
    def _newest_first(target_id: int, kind: ReviewKind) -> Select:
        return (
            select(Review)
            .where(Review.target_id == target_id, Review.kind == kind)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )

    @asynccontextmanager
    async def _transaction(self, operation: str, **context) -> AsyncGenerator[AsyncSession, None]:
        """
        Run one store operation in its own transaction and translate
        SQLAlchemy failures into the review error taxonomy.
        """
        if "kind" in context:
            context["kind"] = ReviewKind(context["kind"]).value

        try:
            async with session_scope(self.session_factory) as session:
                yield session
        except AppException:
            raise
        except IntegrityError as e:
            self._record_failure(operation, "constraint", e, context)
            raise ConstraintError(
                f"Review {operation} rejected by the store",
                details={"operation": operation, **context},
            ) from e
        except DataError as e:
            self._record_failure(operation, "invalid_data", e, context)
            raise InvalidReviewDataError(
                f"Review {operation} rejected a malformed value",
                details={"operation": operation, **context},
            ) from e
        except (OperationalError, InterfaceError, PoolTimeoutError, OSError, TimeoutError) as e:
            self._record_failure(operation, "unavailable", e, context)
            raise UnavailableError(
                f"Review store unavailable during {operation}",
                details={"operation": operation, **context},
            ) from e
        except SQLAlchemyError as e:
            self._record_failure(operation, "unavailable", e, context)
            raise UnavailableError(
                f"Review store failed during {operation}",
                details={"operation": operation, **context},
            ) from e

    def _record_failure(self, operation: str, error: str, exc: Exception, context: dict) -> None:
        self.metrics.increment_store_errors(error=error)
        log_with_context(
            logger,
            "error",
            f"Review store {operation} failed: {exc}",
            operation=operation,
            error=error,
            **context,
        )
