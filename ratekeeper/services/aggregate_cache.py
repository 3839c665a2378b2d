"""Aggregate cache for per-target average ratings and review counts.

Values are derived from the review store and kept for a fixed TTL (no
LRU, no capacity bound). Every operation is best-effort: a backend
failure is logged and counted, reads degrade to a miss and writes or
invalidations degrade to a no-op that leaves any stale entry to expire.
"""
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from redis import asyncio as aioredis

from ratekeeper.lib.logging import get_logger, log_with_context
from ratekeeper.lib.metrics import MetricsCollector, get_metrics_collector
from ratekeeper.lib.settings import settings
from ratekeeper.models.reviews import ReviewKind


logger = get_logger(__name__)

RATING_FIELD = "rating"
COUNT_FIELD = "count"


def cache_key(kind: ReviewKind, target_id: int, field: str) -> str:
    """Build the cache key for one aggregate field, e.g. ``user:42:rating``."""
    return f"{ReviewKind(kind).value}:{target_id}:{field}"


class CacheBackend(ABC):
    """Abstract key/value store with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value under key, expiring after ttl_seconds."""
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """Delete keys. Missing keys are ignored."""
        pass

    async def close(self) -> None:
        pass


class InMemoryCacheBackend(CacheBackend):
    """Process-local backend for development and tests.

    Expired entries are dropped lazily on read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        # {key: (value, expires_at)}
        self._store: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._store.pop(key, None)

    def __len__(self) -> int:
        return len(self._store)


class RedisCacheBackend(CacheBackend):
    """Redis backend using SETEX/GET/DEL.

    Each command is bounded by the client's socket timeout; nothing is retried.
    """

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        socket_timeout: Optional[float] = None,
    ) -> "RedisCacheBackend":
        timeout = socket_timeout if socket_timeout is not None else settings.redis_socket_timeout_seconds
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.setex(key, ttl_seconds, value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self.client.delete(*keys)

    async def close(self) -> None:
        await self.client.aclose()


class AggregateCache:
    """
    Cache of derived review aggregates keyed by (kind, target_id).

    Rating and count are stored as independent entries with the same TTL,
    so a hit on one says nothing about the other.
    """

    def __init__(
        self,
        backend: CacheBackend,
        ttl_seconds: Optional[int] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.backend = backend
        if ttl_seconds is None:
            ttl_seconds = settings.cache_ttl_seconds
        if ttl_seconds <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics or get_metrics_collector()

    async def get_rating(self, kind: ReviewKind, target_id: int) -> Optional[float]:
        return await self._get(kind, target_id, RATING_FIELD, float)

    async def put_rating(self, kind: ReviewKind, target_id: int, value: float) -> None:
        await self._put(kind, target_id, RATING_FIELD, repr(float(value)))

    async def get_count(self, kind: ReviewKind, target_id: int) -> Optional[int]:
        return await self._get(kind, target_id, COUNT_FIELD, int)

    async def put_count(self, kind: ReviewKind, target_id: int, value: int) -> None:
        await self._put(kind, target_id, COUNT_FIELD, str(int(value)))

    async def invalidate(self, kind: ReviewKind, target_id: int) -> bool:
        """
        Delete the rating and count entries for (kind, target_id).

        Idempotent. Returns False only if the backend failed, in which case
        the entries stay until their TTL runs out.
        """
        keys = (
            cache_key(kind, target_id, RATING_FIELD),
            cache_key(kind, target_id, COUNT_FIELD),
        )
        try:
            await self.backend.delete(*keys)
        except Exception as e:
            self.metrics.increment_cache_invalidation(result="error")
            log_with_context(
                logger,
                "warning",
                f"Cache invalidation failed, entries will expire in at most {self.ttl_seconds}s: {e}",
                kind=ReviewKind(kind).value,
                target_id=target_id,
                exc_info=True,
            )
            return False

        self.metrics.increment_cache_invalidation(result="ok")
        log_with_context(
            logger,
            "info",
            "Invalidated cached aggregates",
            kind=ReviewKind(kind).value,
            target_id=target_id,
        )
        return True

    async def _get(self, kind: ReviewKind, target_id: int, field: str, parse: Callable):
        key = cache_key(kind, target_id, field)
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            self.metrics.increment_cache_lookup(field=field, result="error")
            log_with_context(logger, "warning", f"Cache read failed: {e}", key=key, exc_info=True)
            return None

        if raw is None:
            self.metrics.increment_cache_lookup(field=field, result="miss")
            log_with_context(logger, "debug", "Cache miss", key=key)
            return None

        try:
            value = parse(raw)
        except (TypeError, ValueError):
            self.metrics.increment_cache_lookup(field=field, result="error")
            log_with_context(logger, "error", "Failed to parse cached value", key=key, raw=raw)
            return None

        self.metrics.increment_cache_lookup(field=field, result="hit")
        log_with_context(logger, "debug", "Cache hit", key=key)
        return value

    async def _put(self, kind: ReviewKind, target_id: int, field: str, raw: str) -> None:
        key = cache_key(kind, target_id, field)
        try:
            await self.backend.set(key, raw, self.ttl_seconds)
        except Exception as e:
            log_with_context(logger, "warning", f"Cache write failed: {e}", key=key, exc_info=True)
            return
        log_with_context(logger, "debug", "Cached aggregate", key=key, value=raw)

    async def close(self) -> None:
        """Release the backend connection. Failures are logged, not raised."""
        try:
            await self.backend.close()
        except Exception as e:
            log_with_context(logger, "warning", f"Cache backend close failed: {e}", exc_info=True)


def create_cache_backend(backend_name: Optional[str] = None) -> CacheBackend:
    """Build the backend named in configuration (memory or redis)."""
    name = (backend_name or settings.cache_backend).lower()

    if name == "memory":
        return InMemoryCacheBackend()
    elif name == "redis":
        return RedisCacheBackend.from_url(settings.redis_url)
    else:
        raise ValueError(
            f"Unknown cache backend: {name}. "
            f"Valid options: memory, redis"
        )
