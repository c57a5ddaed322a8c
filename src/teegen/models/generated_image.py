"""GeneratedImage entity - one stored artifact belonging to a GenerationRequest."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from teegen.core.timezone import utcnow
from teegen.models.generation_request import InvalidStateTransition


class ImageStatus(str, Enum):
    """GeneratedImage curation status."""

    GENERATED = "generated"
    KEPT = "kept"
    DISCARDED = "discarded"


class GeneratedImage(SQLModel, table=True):
    """GeneratedImage tracks where an artifact lives and whether the user kept it.

    Keyed by (image_id, request_id). Records are only created after the bytes
    are durably stored, so storage_key always dereferences.
    """

    __tablename__ = "generated_images"  # type: ignore[assignment]

    image_id: str = Field(primary_key=True, max_length=36)
    request_id: str = Field(primary_key=True, max_length=36, index=True)
    storage_key: str = Field(max_length=512)
    status: ImageStatus = Field(default=ImageStatus.GENERATED)
    display_index: int = Field(default=0, ge=0)
    retrieval_url: Optional[str] = Field(default=None, max_length=2048)
    retrieval_url_expiry: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    expires_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime)

    @property
    def is_terminal(self) -> bool:
        return self.status != ImageStatus.GENERATED

    def mark_kept(
        self,
        storage_key: str,
        retrieval_url: Optional[str] = None,
        retrieval_url_expiry: Optional[datetime] = None,
    ) -> None:
        """Transition from generated to kept, pointing the record at its permanent key.

        Re-applying keep to an already kept image overwrites the same values, which
        is what makes redelivered keep jobs harmless.

        Raises:
            InvalidStateTransition: If the image was discarded
        """
        if self.status == ImageStatus.DISCARDED:
            raise InvalidStateTransition(
                "Cannot mark kept from discarded. Image must be in generated state."
            )
        if not storage_key:
            raise ValueError("storage_key is required")
        self.storage_key = storage_key
        self.retrieval_url = retrieval_url
        self.retrieval_url_expiry = retrieval_url_expiry
        self.status = ImageStatus.KEPT

    def mark_discarded(self, retention_days: int = 7) -> None:
        """Transition from generated to discarded.

        The storage object becomes eligible for cleanup after retention_days;
        the record itself is retained.

        Raises:
            InvalidStateTransition: If the image was kept
        """
        if self.status == ImageStatus.KEPT:
            raise InvalidStateTransition(
                "Cannot mark discarded from kept. Image must be in generated state."
            )
        if self.status == ImageStatus.DISCARDED:
            return
        self.expires_at = utcnow() + timedelta(days=retention_days)
        self.status = ImageStatus.DISCARDED
