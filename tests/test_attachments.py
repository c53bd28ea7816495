import asyncio
from collections.abc import AsyncIterator

from mastosync.attachments import AttachmentPipeline, SingleSlotPipe


async def _source(chunks: list[bytes], produced: list[int], fail_after: int | None = None) -> AsyncIterator[bytes]:
    for idx, chunk in enumerate(chunks):
        if fail_after is not None and idx == fail_after:
            raise ConnectionError("download broke")
        produced.append(idx)
        yield chunk


def test_stream_attach_passes_every_chunk_in_order() -> None:
    received: list[bytes] = []

    async def uploader(stream: AsyncIterator[bytes], description: str | None) -> str:
        async for chunk in stream:
            received.append(chunk)
        return f"media-{description}"

    async def run() -> None:
        pipeline = AttachmentPipeline(uploader)
        media_id = await pipeline.stream_attach(_source([b"a", b"bb", b"ccc"], []), description="alt")
        assert media_id == "media-alt"

    asyncio.run(run())
    assert received == [b"a", b"bb", b"ccc"]


def test_stream_attach_never_buffers_more_than_one_chunk_ahead() -> None:
    produced: list[int] = []
    max_lead = 0

    async def uploader(stream: AsyncIterator[bytes], description: str | None) -> str:
        nonlocal max_lead
        consumed = 0
        async for _ in stream:
            consumed += 1
            await asyncio.sleep(0.001)
            # One chunk in the slot plus one held by the blocked writer.
            max_lead = max(max_lead, len(produced) - consumed)
        return "id"

    async def run() -> None:
        pipeline = AttachmentPipeline(uploader)
        await pipeline.stream_attach(_source([b"x"] * 20, produced))

    asyncio.run(run())
    assert len(produced) == 20
    assert max_lead <= 2


def test_download_failure_fails_the_attachment() -> None:
    async def uploader(stream: AsyncIterator[bytes], description: str | None) -> str:
        async for _ in stream:
            pass
        return "id"

    async def run() -> None:
        pipeline = AttachmentPipeline(uploader)
        try:
            await pipeline.stream_attach(_source([b"a", b"b", b"c"], [], fail_after=1))
        except ConnectionError as exc:
            assert "download broke" in str(exc)
            return
        raise AssertionError("expected ConnectionError")

    asyncio.run(run())


def test_upload_failure_fails_the_attachment_and_stops_download() -> None:
    produced: list[int] = []

    async def uploader(stream: AsyncIterator[bytes], description: str | None) -> str:
        async for _ in stream:
            raise RuntimeError("upload rejected")
        return "id"

    async def run() -> None:
        pipeline = AttachmentPipeline(uploader)
        try:
            await pipeline.stream_attach(_source([b"x"] * 50, produced))
        except RuntimeError as exc:
            assert "upload rejected" in str(exc)
            return
        raise AssertionError("expected RuntimeError")

    asyncio.run(run())
    assert len(produced) < 50


def test_single_slot_pipe_reader_stops_at_close() -> None:
    async def run() -> list[bytes]:
        pipe = SingleSlotPipe()

        async def writer() -> None:
            await pipe.write(b"1")
            await pipe.write(b"")
            await pipe.write(b"2")
            await pipe.close()

        task = asyncio.create_task(writer())
        chunks = [chunk async for chunk in pipe.reader()]
        await task
        return chunks

    assert asyncio.run(run()) == [b"1", b"2"]
