"""Redis-backed anomaly signal store. Signals are ephemeral: stored in a sorted set scored by detection time, with TTL."""

import json
from datetime import datetime
from typing import List

from tenantguard.governance.anomaly_models import AnomalySignal
from tenantguard.infrastructure.cache.redis_client import RedisClient

SIGNAL_STORE_KEY = "anomaly_signals"
SIGNAL_STORE_TTL = 86400  # 1 day


class RedisAnomalySignalStore:
    """Implements AnomalySignalStore. Entries older than the TTL are trimmed on save."""

    def __init__(self, redis_client: RedisClient, ttl_seconds: int = SIGNAL_STORE_TTL) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    async def save(self, signal: AnomalySignal) -> None:
        score = signal.detected_at.timestamp()
        await self._redis.zadd(SIGNAL_STORE_KEY, {json.dumps(signal.to_dict()): score})
        await self._redis.zremrangebyscore(SIGNAL_STORE_KEY, "-inf", score - self._ttl)
        await self._redis.expire(SIGNAL_STORE_KEY, self._ttl)

    async def list_since(self, since: datetime) -> List[AnomalySignal]:
        raw = await self._redis.zrangebyscore(SIGNAL_STORE_KEY, since.timestamp())
        return [AnomalySignal.from_dict(json.loads(item)) for item in raw]
