from __future__ import annotations

from dataclasses import dataclass

from redis.asyncio import Redis


@dataclass(slots=True)
class RedisMediaGroupStore:
    redis: Redis
    ttl_seconds: int = 172800

    @classmethod
    async def create(cls, redis_url: str, ttl_seconds: int) -> "RedisMediaGroupStore":
        redis = Redis.from_url(redis_url, decode_responses=True)
        await redis.ping()
        return cls(redis=redis, ttl_seconds=ttl_seconds)

    @staticmethod
    def _key(group_id: str) -> str:
        return f"media_group:{group_id}"

    async def put(self, group_id: str, sequence_no: int, payload: str) -> None:
        key = self._key(group_id)
        await self.redis.hset(key, str(sequence_no), payload)
        await self.redis.expire(key, self.ttl_seconds)

    async def fetch(self, group_id: str) -> list[tuple[int, str]]:
        raw = await self.redis.hgetall(self._key(group_id))
        return sorted((int(field), value) for field, value in raw.items())

    async def close(self) -> None:
        await self.redis.aclose()
