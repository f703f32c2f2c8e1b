"""Fixtures for infrastructure tests: in-memory SQLite engine, sorted-set FakeRedis."""

import pytest
from sqlalchemy.pool import StaticPool

from tenantguard.infrastructure.database.session import build_engine, build_sessionmaker, create_schema


class FakeRedis:
    """In-memory Redis with just the sorted-set commands the signal store uses."""

    def __init__(self):
        self._zsets: dict[str, dict[str, float]] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def ping(self):
        return True

    async def zadd(self, key, mapping):
        zset = self._zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    @staticmethod
    def _bound(value, default):
        if value == "-inf":
            return float("-inf")
        if value == "+inf":
            return float("inf")
        return float(value) if value is not None else default

    async def zrangebyscore(self, key, min_score, max_score):
        low, high = self._bound(min_score, float("-inf")), self._bound(max_score, float("inf"))
        zset = self._zsets.get(key, {})
        return [m for m, s in sorted(zset.items(), key=lambda kv: kv[1]) if low <= s <= high]

    async def zremrangebyscore(self, key, min_score, max_score):
        low, high = self._bound(min_score, float("-inf")), self._bound(max_score, float("inf"))
        zset = self._zsets.get(key, {})
        doomed = [m for m, s in zset.items() if low <= s <= high]
        for member in doomed:
            del zset[member]
        return len(doomed)

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test. StaticPool keeps every session on one connection."""
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)
