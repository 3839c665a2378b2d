"""
Review services: durable store, aggregate cache and the aggregator on top.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratekeeper.services.aggregate_cache import (
    AggregateCache,
    CacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    create_cache_backend,
)
from ratekeeper.services.review_aggregator import ReviewAggregator
from ratekeeper.services.review_store import ReviewStore


def create_review_aggregator(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    cache_backend: Optional[CacheBackend] = None,
) -> ReviewAggregator:
    """
    Wire a ReviewAggregator from configuration.

    Usage:
        aggregator = create_review_aggregator()
        review = await aggregator.submit_or_update_review(42, 7, 5, "great", ReviewKind.USER)
    """
    store = ReviewStore(session_factory) if session_factory is not None else ReviewStore()
    cache = AggregateCache(cache_backend or create_cache_backend())
    return ReviewAggregator(store, cache)


__all__ = [
    "AggregateCache",
    "CacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "ReviewAggregator",
    "ReviewStore",
    "create_cache_backend",
    "create_review_aggregator",
]
