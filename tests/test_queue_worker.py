"""QueueWorker tests: acknowledgement, failure bookkeeping, timeouts and concurrency."""

import asyncio

import pytest

from teegen.repositories.queue_message import dead_letter_name
from teegen.services.queue import QueueConfig, QueueName, WorkQueue, queue_config
from teegen.workers.base import QueueWorker


def make_queue(uow_factory, **overrides) -> WorkQueue:
    fields = dict(
        name=QueueName.ACTION,
        visibility_timeout=60,
        job_timeout=5,
        max_concurrency=2,
        max_receive_count=3,
    )
    fields.update(overrides)
    return WorkQueue(uow_factory, QueueConfig(**fields))


async def last_error(uow_factory, message_id: int) -> str | None:
    async with await uow_factory() as uow:
        message = await uow.queue.get_by_id(message_id)
    return message.last_error if message else None


def test_queue_config_reads_per_queue_settings(settings):
    config = queue_config(settings, QueueName.GENERATION)

    assert config.job_timeout == 60
    assert config.visibility_timeout == 360
    assert config.max_concurrency == 5
    assert config.max_receive_count == 3
    assert QueueName.GENERATION.dead_letter == "generation-dlq"


@pytest.mark.asyncio
class TestQueueWorker:
    async def test_successful_handler_acknowledges(self, uow_factory):
        queue = make_queue(uow_factory)
        seen = []

        async def handler(body: dict) -> None:
            seen.append(body)

        await queue.send({"n": 1})
        worker = QueueWorker(queue, handler, "test")

        started = await worker.poll_once()
        await worker.drain()

        assert started == 1
        assert seen == [{"n": 1}]
        assert await queue.depth() == 0

    async def test_failing_handler_leaves_message_for_redelivery(self, uow_factory):
        queue = make_queue(uow_factory)

        async def handler(body: dict) -> None:
            raise ValueError("bad image id")

        message_id = await queue.send({"n": 1})
        worker = QueueWorker(queue, handler, "test")

        await worker.poll_once()
        await worker.drain()

        assert await queue.depth() == 1
        assert await last_error(uow_factory, message_id) == "ValueError: bad image id"

    async def test_timed_out_handler_is_failed(self, uow_factory):
        queue = make_queue(uow_factory, job_timeout=0.05)

        async def handler(body: dict) -> None:
            await asyncio.sleep(10)

        message_id = await queue.send({"n": 1})
        worker = QueueWorker(queue, handler, "test")
        received = await queue.receive()

        acknowledged = await worker.process_message(received[0])

        assert acknowledged is False
        assert await last_error(uow_factory, message_id) == "job timed out"

    async def test_repeated_failures_dead_letter(self, uow_factory):
        queue = make_queue(uow_factory, visibility_timeout=0, max_receive_count=2)

        async def handler(body: dict) -> None:
            raise RuntimeError("boom")

        await queue.send({"n": 1})
        worker = QueueWorker(queue, handler, "test")

        for _ in range(3):
            await worker.poll_once()
            await worker.drain()

        assert await queue.depth() == 0
        assert await queue.dead_letter_depth() == 1
        async with await uow_factory() as uow:
            dead = await uow.queue.list_messages(dead_letter_name(queue.name))
        assert dead[0].last_error == "RuntimeError: boom"

    async def test_concurrency_cap(self, uow_factory):
        queue = make_queue(uow_factory, max_concurrency=2)
        release = asyncio.Event()
        running = []

        async def handler(body: dict) -> None:
            running.append(body["n"])
            await release.wait()

        for n in range(5):
            await queue.send({"n": n})
        worker = QueueWorker(queue, handler, "test")

        first = await worker.poll_once()
        second = await worker.poll_once()
        for _ in range(100):
            if len(running) == 2:
                break
            await asyncio.sleep(0.01)

        assert first == 2
        assert second == 0
        assert worker.free_slots == 0
        assert sorted(running) == [0, 1]

        release.set()
        await worker.drain()
        assert await queue.depth() == 3

    async def test_run_processes_until_cancelled(self, uow_factory):
        queue = make_queue(uow_factory)
        done = asyncio.Event()

        async def handler(body: dict) -> None:
            done.set()

        await queue.send({"n": 1})
        worker = QueueWorker(queue, handler, "test", poll_interval=0.01)

        task = asyncio.create_task(worker.run())
        await asyncio.wait_for(done.wait(), timeout=5)
        for _ in range(100):
            if await queue.depth() == 0:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await queue.depth() == 0
        assert worker.free_slots == 2
