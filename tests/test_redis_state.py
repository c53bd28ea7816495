import asyncio

from mastosync.storage.redis_state import RedisMediaGroupStore


class _FakeRedis:
    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}

    async def hset(self, key: str, field: str, value: str) -> int:
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))


def test_redis_store_sorts_numerically_and_refreshes_ttl() -> None:
    redis = _FakeRedis()
    store = RedisMediaGroupStore(redis=redis, ttl_seconds=60)  # type: ignore[arg-type]

    async def run() -> list[tuple[int, str]]:
        await store.put("g", 10, "ten")
        await store.put("g", 9, "nine")
        return await store.fetch("g")

    assert asyncio.run(run()) == [(9, "nine"), (10, "ten")]
    assert redis.ttls == {"media_group:g": 60}
