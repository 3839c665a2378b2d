"""
Shared fixtures: a throwaway SQLite review database, a controllable clock
and fully wired store/cache/aggregator instances.
"""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from ratekeeper.lib.db import build_engine, build_session_factory, drop_db, init_db
from ratekeeper.lib.metrics import MetricsCollector
from ratekeeper.services.aggregate_cache import AggregateCache, InMemoryCacheBackend
from ratekeeper.services.review_aggregator import ReviewAggregator
from ratekeeper.services.review_store import ReviewStore
import ratekeeper.models  # noqa: F401


class SteppingClock:
    """Returns a timestamp that advances by `step` on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


class ManualClock:
    """Monotonic-style clock for cache TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def metrics():
    """Fresh metrics collector for each test."""
    return MetricsCollector()


@pytest.fixture
def clock():
    return SteppingClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache_clock():
    return ManualClock()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite database file per test, schema created from the models."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'reviews.db'}")
    await init_db(engine)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory, clock, metrics):
    return ReviewStore(session_factory, clock=clock, metrics=metrics)


@pytest.fixture
def cache_backend(cache_clock):
    return InMemoryCacheBackend(clock=cache_clock)


@pytest.fixture
def cache(cache_backend, metrics):
    return AggregateCache(cache_backend, ttl_seconds=600, metrics=metrics)


@pytest.fixture(params=["upsert", "check_then_act"])
def aggregator(request, store, cache):
    """Aggregator over the SQLite store, once per write strategy."""
    return ReviewAggregator(store, cache, write_strategy=request.param)
