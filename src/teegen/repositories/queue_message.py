"""QueueMessage repository.

Implements durable at-least-once queues on top of the queue_messages table.
Consumers coordinate via FOR UPDATE SKIP LOCKED so concurrent workers receive
non-overlapping messages.
"""

from datetime import timedelta

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teegen.core.timezone import utcnow
from teegen.models.queue_message import QueueMessage

logger = structlog.get_logger(__name__)


def dead_letter_name(queue_name: str) -> str:
    """Name of the dead-letter queue paired with queue_name."""
    return f"{queue_name}-dlq"


class QueueMessageRepository:
    """Repository for QueueMessage entities.

    Delivery model:
    - send() makes a message visible immediately
    - receive() hides it for the visibility timeout and counts the delivery
    - delete() acknowledges it
    - a message whose receive_count already reached max_receive_count is moved
      to the dead-letter queue instead of being delivered again
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def send(self, queue_name: str, body: dict) -> QueueMessage:
        """Enqueue a message body on queue_name.

        Args:
            queue_name: Target queue
            body: JSON-serializable job body

        Returns:
            Persisted message with generated ID
        """
        now = utcnow()
        message = QueueMessage(queue_name=queue_name, body=body, visible_at=now, created_at=now)
        self.session.add(message)
        await self.session.flush()
        return message

    async def receive(
        self,
        queue_name: str,
        visibility_timeout: int,
        max_receive_count: int,
        limit: int = 1,
    ) -> list[QueueMessage]:
        """Receive up to limit visible messages, hiding them for visibility_timeout.

        Uses FOR UPDATE SKIP LOCKED so concurrent consumers never receive the
        same message within one visibility window. Oldest messages are locked
        first but no ordering is guaranteed to handlers.

        Query explanation:
        - WHERE queue_name = :name AND visible_at <= now(): Only visible messages
        - ORDER BY id ASC: Oldest first
        - FOR UPDATE SKIP LOCKED: Lock rows, skip rows locked by other consumers

        Args:
            queue_name: Queue to consume
            visibility_timeout: Seconds a received message stays hidden
            max_receive_count: Deliveries allowed before dead-lettering
            limit: Maximum number of messages to return

        Returns:
            Received messages with receive_count already incremented
        """
        now = utcnow()
        result = await self.session.execute(
            select(QueueMessage)
            .where(QueueMessage.queue_name == queue_name)  # type: ignore[arg-type]
            .where(QueueMessage.visible_at <= now)  # type: ignore[arg-type]
            .order_by(QueueMessage.id.asc())  # type: ignore[union-attr]
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        candidates = list(result.scalars().all())

        received = []
        for message in candidates:
            if message.receive_count >= max_receive_count:
                message.queue_name = dead_letter_name(queue_name)
                message.visible_at = now
                logger.warning(
                    "queue.dead_lettered",
                    queue=queue_name,
                    message_id=message.id,
                    receive_count=message.receive_count,
                    last_error=message.last_error,
                )
                continue

            message.receive_count += 1
            message.visible_at = now + timedelta(seconds=visibility_timeout)
            received.append(message)

        await self.session.flush()
        return received

    async def get_by_id(self, message_id: int) -> QueueMessage | None:
        """Retrieve message by ID."""
        result = await self.session.execute(
            select(QueueMessage).where(QueueMessage.id == message_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def delete(self, message_id: int) -> None:
        """Acknowledge a message by deleting it."""
        await self.session.execute(delete(QueueMessage).where(QueueMessage.id == message_id))  # type: ignore[arg-type]

    async def record_failure(self, message_id: int, error: str) -> None:
        """Store the last processing error on a message.

        The message stays hidden until its visibility timeout lapses and is then
        redelivered; visible_at is left untouched.
        """
        await self.session.execute(
            update(QueueMessage)
            .where(QueueMessage.id == message_id)  # type: ignore[arg-type]
            .values(last_error=error[:1000])
        )

    async def redrive(self, source_queue: str, target_queue: str, limit: int | None = None) -> int:
        """Move messages from source_queue back to target_queue with a fresh receive budget.

        Args:
            source_queue: Queue to drain (normally a dead-letter queue)
            target_queue: Queue to move messages onto
            limit: Maximum number of messages to move (default: all)

        Returns:
            Number of messages moved
        """
        query = (
            select(QueueMessage)
            .where(QueueMessage.queue_name == source_queue)  # type: ignore[arg-type]
            .order_by(QueueMessage.id.asc())  # type: ignore[union-attr]
            .with_for_update(skip_locked=True)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        messages = list(result.scalars().all())

        now = utcnow()
        for message in messages:
            message.queue_name = target_queue
            message.receive_count = 0
            message.visible_at = now
        await self.session.flush()
        return len(messages)

    async def list_messages(self, queue_name: str, limit: int = 100) -> list[QueueMessage]:
        """List messages on a queue without receiving them (inspection only)."""
        result = await self.session.execute(
            select(QueueMessage)
            .where(QueueMessage.queue_name == queue_name)  # type: ignore[arg-type]
            .order_by(QueueMessage.id.asc())  # type: ignore[union-attr]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def depth(self, queue_name: str) -> int:
        """Count messages on a queue, visible and in flight."""
        result = await self.session.execute(
            select(func.count())
            .select_from(QueueMessage)
            .where(QueueMessage.queue_name == queue_name)  # type: ignore[arg-type]
        )
        return result.scalar_one()
