from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from aiohttp import ClientSession, ClientTimeout

from mastosync.bot_api import TelegramBotApi
from mastosync.config import Settings
from mastosync.language import LangdetectDetector
from mastosync.logging_setup import configure_logging
from mastosync.media_group import MediaGroupCache, MediaGroupStore
from mastosync.message_queue import MessageQueue
from mastosync.publisher import PostPublisher
from mastosync.storage.db import LoginRepository, Postgres, PostgresMediaGroupStore
from mastosync.storage.redis_state import RedisMediaGroupStore
from mastosync.telegram_bot import TelegramSyncBot

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    db = Postgres(settings.database_url)
    await db.connect()
    await db.apply_schema()

    store: MediaGroupStore = PostgresMediaGroupStore(db)
    redis_store: RedisMediaGroupStore | None = None
    if settings.redis_url:
        try:
            redis_store = await RedisMediaGroupStore.create(settings.redis_url, settings.media_group_ttl_sec)
            store = redis_store
        except Exception:
            logger.exception("redis_unavailable_fallback_postgres")

    api = TelegramBotApi(
        settings.bot_token,
        poll_timeout_sec=settings.bot_poll_timeout_sec,
        download_timeout_sec=settings.http_timeout_sec,
        chunk_size=settings.download_chunk_size,
    )
    media_groups = MediaGroupCache(store)
    publisher = PostPublisher(
        files=api,
        media_groups=media_groups,
        detector=LangdetectDetector(),
        default_language=settings.default_language,
        retry_interval_sec=settings.media_process_interval_sec,
        timeout_sec=settings.media_process_timeout_sec,
    )
    http = ClientSession(timeout=ClientTimeout(total=settings.http_timeout_sec))
    bot = TelegramSyncBot(
        settings=settings,
        api=api,
        queue=MessageQueue(settings.queue_max_size),
        media_groups=media_groups,
        logins=LoginRepository(db),
        publisher=publisher,
        http=http,
    )

    try:
        await bot.start()
    finally:
        await bot.shutdown()
        with suppress(Exception):
            await http.close()
        if redis_store:
            with suppress(Exception):
                await redis_store.close()
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
