"""Queue consumer loop shared by the generation, action and ideation workers."""

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from teegen.models.queue_message import QueueMessage
from teegen.services.queue import WorkQueue

logger = structlog.get_logger(__name__)

JobHandler = Callable[[dict], Awaitable[None]]


class QueueWorker:
    """Polls one WorkQueue and runs a handler per message.

    At most queue.config.max_concurrency handlers run at once, each limited to
    queue.config.job_timeout seconds. A handler that returns acknowledges its
    message; one that raises or times out leaves the message to be redelivered
    once its visibility timeout lapses (and dead-lettered after
    max_receive_count deliveries).
    """

    def __init__(
        self,
        queue: WorkQueue,
        handler: JobHandler,
        worker_name: str,
        poll_interval: float = 1.0,
    ):
        self.queue = queue
        self.handler = handler
        self.worker_name = worker_name
        self.poll_interval = poll_interval
        self._in_flight: set[asyncio.Task] = set()

    @property
    def free_slots(self) -> int:
        return self.queue.config.max_concurrency - len(self._in_flight)

    async def process_message(self, message: QueueMessage) -> bool:
        """Run the handler for one received message and settle it.

        Returns:
            True if the message was acknowledged
        """
        start_time = time.monotonic()
        log = logger.bind(
            worker=self.worker_name,
            queue=self.queue.name,
            message_id=message.id,
            receive_count=message.receive_count,
        )
        try:
            await asyncio.wait_for(self.handler(message.body), timeout=self.queue.config.job_timeout)
        except asyncio.TimeoutError:
            log.error("job.timed_out", timeout_seconds=self.queue.config.job_timeout)
            await self.queue.fail(message.id, "job timed out")  # type: ignore[arg-type]
            return False
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(
                "job.failed",
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            await self.queue.fail(message.id, f"{type(e).__name__}: {e}")  # type: ignore[arg-type]
            return False

        await self.queue.ack(message.id)  # type: ignore[arg-type]
        log.info("job.succeeded", duration_seconds=round(time.monotonic() - start_time, 3))
        return True

    def _start(self, message: QueueMessage) -> None:
        task = asyncio.create_task(self.process_message(message))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def poll_once(self) -> int:
        """Receive as many messages as there are free slots and start handlers.

        Returns:
            Number of messages started
        """
        if self.free_slots <= 0:
            return 0
        messages = await self.queue.receive(limit=self.free_slots)
        for message in messages:
            self._start(message)
        return len(messages)

    async def drain(self) -> None:
        """Wait for every in-flight handler to finish."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def run(self) -> None:
        """Main loop: poll, and sleep whenever the queue is empty or all slots are busy."""
        logger.info(
            "worker.started",
            worker=self.worker_name,
            queue=self.queue.name,
            max_concurrency=self.queue.config.max_concurrency,
            poll_interval=self.poll_interval,
        )
        try:
            while True:
                try:
                    started = await self.poll_once()
                    if started == 0:
                        if self.free_slots <= 0 and self._in_flight:
                            await asyncio.wait(self._in_flight, return_when=asyncio.FIRST_COMPLETED)
                        else:
                            await asyncio.sleep(self.poll_interval)

                except asyncio.CancelledError:
                    raise

                except Exception as e:
                    # Receive failed (database unavailable); back off before polling again
                    logger.error(
                        "worker.error",
                        worker=self.worker_name,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        exc_info=True,
                    )
                    await asyncio.sleep(5)

        except asyncio.CancelledError:
            for task in list(self._in_flight):
                task.cancel()
            await self.drain()
            logger.info("worker.stopped", worker=self.worker_name)
            raise
