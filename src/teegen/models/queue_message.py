"""QueueMessage entity - durable work queue row."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from teegen.core.timezone import utcnow


class QueueMessage(SQLModel, table=True):
    """QueueMessage holds one job body for a named queue.

    A message is visible to consumers once visible_at has passed. Receiving it
    increments receive_count and hides it for the queue's visibility timeout;
    acknowledging it deletes the row.
    """

    __tablename__ = "queue_messages"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    queue_name: str = Field(max_length=64, index=True)
    body: dict = Field(sa_column=Column(JSON, nullable=False))
    receive_count: int = Field(default=0, ge=0)
    visible_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    last_error: Optional[str] = Field(default=None, max_length=1000)
