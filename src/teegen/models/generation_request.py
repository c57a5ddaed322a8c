"""GenerationRequest entity - one prompt-to-images job with lifecycle status tracking."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from teegen.core.timezone import utcnow


class RequestStatus(str, Enum):
    """GenerationRequest lifecycle status."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_REQUEST_STATUSES = (RequestStatus.COMPLETED, RequestStatus.FAILED)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid request or image state transition."""

    pass


class GenerationRequest(SQLModel, table=True):
    """GenerationRequest represents one user-submitted prompt and its generation state."""

    __tablename__ = "generation_requests"  # type: ignore[assignment]

    request_id: str = Field(primary_key=True, max_length=36)
    user_id: str = Field(max_length=64, index=True)
    channel_id: str = Field(max_length=64)
    prompt: str = Field(max_length=1000)
    enhanced_prompt: str = Field(default="")
    status: RequestStatus = Field(default=RequestStatus.PENDING, index=True)
    model: str = Field(default="", max_length=255)
    callback_target: str = Field(max_length=1024)
    error_message: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    expires_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime)

    @classmethod
    def create(
        cls,
        request_id: str,
        user_id: str,
        channel_id: str,
        prompt: str,
        callback_target: str,
        model: str = "",
        ttl_days: int = 30,
    ) -> "GenerationRequest":
        """Build a pending request with its cleanup horizon set."""
        now = utcnow()
        return cls(
            request_id=request_id,
            user_id=user_id,
            channel_id=channel_id,
            prompt=prompt,
            callback_target=callback_target,
            model=model,
            status=RequestStatus.PENDING,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=ttl_days),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUEST_STATUSES

    def mark_generating(self, enhanced_prompt: str, model: str) -> None:
        """Transition from pending to generating.

        A request already in generating is accepted as well: that only happens when
        the job is redelivered after a worker died mid-flight, and the retry resumes it.

        Args:
            enhanced_prompt: Prompt sent to the provider after enhancement
            model: Provider model identifier used for this generation

        Raises:
            InvalidStateTransition: If current status is completed or failed
        """
        if self.status not in (RequestStatus.PENDING, RequestStatus.GENERATING):
            raise InvalidStateTransition(
                f"Cannot mark generating from {self.status.value}. "
                "Request must be in pending state."
            )
        self.enhanced_prompt = enhanced_prompt
        self.model = model
        self.status = RequestStatus.GENERATING
        self.updated_at = utcnow()

    def mark_completed(self) -> None:
        """Transition from generating to completed.

        Raises:
            InvalidStateTransition: If current status is not generating
        """
        if self.status != RequestStatus.GENERATING:
            raise InvalidStateTransition(
                f"Cannot mark completed from {self.status.value}. "
                "Request must be in generating state."
            )
        self.status = RequestStatus.COMPLETED
        self.updated_at = utcnow()

    def mark_failed(self, error_message: str) -> None:
        """Transition from generating to failed.

        Args:
            error_message: Short description of the failure (truncated to 1000 chars)

        Raises:
            InvalidStateTransition: If current status is not generating
        """
        if self.status != RequestStatus.GENERATING:
            raise InvalidStateTransition(
                f"Cannot mark failed from {self.status.value}. "
                "Request must be in generating state."
            )
        self.error_message = error_message[:1000]
        self.status = RequestStatus.FAILED
        self.updated_at = utcnow()
