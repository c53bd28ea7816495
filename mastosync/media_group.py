from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Protocol

from mastosync.media import MediaItem

logger = logging.getLogger(__name__)


class MediaGroupCacheError(Exception):
    pass


class MediaGroupStore(Protocol):
    async def put(self, group_id: str, sequence_no: int, payload: str) -> None:
        ...

    async def fetch(self, group_id: str) -> list[tuple[int, str]]:
        ...


class InMemoryMediaGroupStore:
    def __init__(self) -> None:
        self._groups: dict[str, dict[int, str]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def put(self, group_id: str, sequence_no: int, payload: str) -> None:
        async with self._lock:
            self._groups[group_id][sequence_no] = payload

    async def fetch(self, group_id: str) -> list[tuple[int, str]]:
        async with self._lock:
            return sorted(self._groups.get(group_id, {}).items())


class MediaGroupCache:
    """Reassembles albums that Telegram delivers as separate messages.

    There is no "group complete" signal, so ``resolve`` returns whatever has
    been recorded so far.
    """

    def __init__(self, store: MediaGroupStore) -> None:
        self.store = store

    async def record(self, group_id: str, sequence_no: int, item: MediaItem) -> None:
        try:
            payload = json.dumps(item.as_json(), ensure_ascii=False)
            await self.store.put(group_id, sequence_no, payload)
        except Exception:
            logger.exception(
                "media_group_record_failed",
                extra={"action": "media_group_record", "group_id": group_id, "message_id": sequence_no},
            )
            return
        logger.debug(
            "media_group_recorded",
            extra={"action": "media_group_record", "group_id": group_id, "message_id": sequence_no},
        )

    async def resolve(self, group_id: str) -> list[MediaItem]:
        try:
            rows = await self.store.fetch(group_id)
            rows = sorted(rows, key=lambda row: row[0])
            return [MediaItem.from_json(json.loads(payload)) for _, payload in rows]
        except Exception as exc:
            logger.exception("media_group_resolve_failed", extra={"group_id": group_id})
            raise MediaGroupCacheError(f"failed to query media group: {exc}") from exc
