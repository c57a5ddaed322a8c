"""Work queue facade used by the gateways, workers and CLI.

Each call opens its own unit of work so receive, ack and failure bookkeeping
commit independently of the job's own transactions.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from teegen.core.config import Settings
from teegen.models.queue_message import QueueMessage
from teegen.repositories.queue_message import dead_letter_name
from teegen.uow import UowFactory

logger = structlog.get_logger(__name__)


class QueueName(str, Enum):
    GENERATION = "generation"
    ACTION = "action"
    IDEATION = "ideation"

    @property
    def dead_letter(self) -> str:
        return dead_letter_name(self.value)


@dataclass(frozen=True)
class QueueConfig:
    """Consumer settings for one queue."""

    name: QueueName
    visibility_timeout: int
    job_timeout: int
    max_concurrency: int
    max_receive_count: int


def queue_config(settings: Settings, name: QueueName) -> QueueConfig:
    prefix = name.value
    return QueueConfig(
        name=name,
        visibility_timeout=getattr(settings, f"{prefix}_visibility_timeout_seconds"),
        job_timeout=getattr(settings, f"{prefix}_job_timeout_seconds"),
        max_concurrency=getattr(settings, f"{prefix}_max_concurrency"),
        max_receive_count=settings.max_receive_count,
    )


class WorkQueue:
    """One durable queue bound to its consumer configuration."""

    def __init__(self, uow_factory: UowFactory, config: QueueConfig):
        self.uow_factory = uow_factory
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name.value

    async def send(self, body: dict) -> int:
        async with await self.uow_factory() as uow:
            message = await uow.queue.send(self.name, body)
        logger.debug("queue.sent", queue=self.name, message_id=message.id)
        return message.id  # type: ignore[return-value]

    async def receive(self, limit: int = 1) -> list[QueueMessage]:
        """Receive up to limit messages; returned entities are detached."""
        async with await self.uow_factory() as uow:
            return await uow.queue.receive(
                self.name,
                visibility_timeout=self.config.visibility_timeout,
                max_receive_count=self.config.max_receive_count,
                limit=limit,
            )

    async def ack(self, message_id: int) -> None:
        async with await self.uow_factory() as uow:
            await uow.queue.delete(message_id)

    async def fail(self, message_id: int, error: str) -> None:
        async with await self.uow_factory() as uow:
            await uow.queue.record_failure(message_id, error)

    async def depth(self) -> int:
        async with await self.uow_factory() as uow:
            return await uow.queue.depth(self.name)

    async def dead_letter_depth(self) -> int:
        async with await self.uow_factory() as uow:
            return await uow.queue.depth(self.config.name.dead_letter)
