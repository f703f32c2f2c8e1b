# tenantguard/infrastructure/cache/redis_client.py

from typing import Dict, List

import redis.asyncio as redis


class RedisClient:
    def __init__(self, redis_url: str, client=None):
        self.client = client or redis.from_url(
            redis_url,
            decode_responses=True,
        )

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        """Add members with scores to a sorted set."""
        return await self.client.zadd(key, mapping)

    async def zrangebyscore(self, key: str, min_score: float, max_score: float | str = "+inf") -> List[str]:
        """Members with min_score <= score <= max_score, lowest score first."""
        return await self.client.zrangebyscore(key, min_score, max_score)

    async def zremrangebyscore(self, key: str, min_score: float | str, max_score: float) -> int:
        """Remove members scored within the range. Returns count removed."""
        return await self.client.zremrangebyscore(key, min_score, max_score)

    async def expire(self, key: str, seconds: int) -> None:
        """Set TTL on key."""
        await self.client.expire(key, seconds)

    async def close(self) -> None:
        await self.client.aclose()
