import asyncio
import logging

from mastosync.message_queue import MessageQueue, Update
from mastosync.workers import WorkerPool


def test_worker_pool_processes_updates_and_logs_update_id(caplog) -> None:
    processed: list[Update] = []

    async def processor(update: Update) -> None:
        processed.append(update)
        if update["update_id"] == 2:
            raise RuntimeError("bad update")

    async def run() -> None:
        queue = MessageQueue(max_size=10)
        pool = WorkerPool(queue=queue, processor=processor, worker_count=2, poll_timeout=0.01)
        await pool.start()
        await queue.put({"update_id": 1})
        await queue.put({"update_id": 2})
        await queue.put({"update_id": 3})
        await queue.join()
        await pool.stop()

    with caplog.at_level(logging.DEBUG, logger="mastosync.workers"):
        asyncio.run(run())

    assert sorted(update["update_id"] for update in processed) == [1, 2, 3]
    received = [record for record in caplog.records if record.getMessage() == "worker_update_received"]
    assert sorted(record.update_id for record in received) == [1, 2, 3]
    assert any(record.getMessage() == "worker_failed" for record in caplog.records)
