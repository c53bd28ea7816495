from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

Uploader = Callable[[AsyncIterator[bytes], str | None], Awaitable[str]]


class SingleSlotPipe:
    """In-memory pipe holding at most one chunk.

    ``write`` blocks until the reader has taken the previous chunk, so the
    writer can never run ahead of the reader by more than one chunk.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=1)

    async def write(self, chunk: bytes) -> None:
        if chunk:
            await self._queue.put(chunk)

    async def close(self) -> None:
        await self._queue.put(None)

    async def reader(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk


class AttachmentPipeline:
    def __init__(self, uploader: Uploader) -> None:
        self.uploader = uploader

    async def stream_attach(self, source: AsyncIterable[bytes], description: str | None = None) -> str:
        """Stream ``source`` into the uploader and return the attachment id.

        Download and upload run concurrently. The first failure is raised and
        the other side is cancelled.
        """

        pipe = SingleSlotPipe()
        download = asyncio.create_task(self._download(source, pipe), name="attachment-download")
        upload = asyncio.create_task(self.uploader(pipe.reader(), description), name="attachment-upload")
        tasks = (download, upload)
        try:
            pending: set[asyncio.Task] = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    exc = task.exception()
                    if exc is not None:
                        raise exc
                if upload in done:
                    break
            return upload.result()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    @staticmethod
    async def _download(source: AsyncIterable[bytes], pipe: SingleSlotPipe) -> int:
        total = 0
        async for chunk in source:
            total += len(chunk)
            await pipe.write(chunk)
        await pipe.close()
        logger.debug("attachment_download_done", extra={"action": "attachment_download", "size": total})
        return total
