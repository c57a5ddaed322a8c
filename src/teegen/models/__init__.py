"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from teegen.models.generated_image import GeneratedImage, ImageStatus
from teegen.models.generation_request import (
    GenerationRequest,
    InvalidStateTransition,
    RequestStatus,
)
from teegen.models.queue_message import QueueMessage

__all__ = [
    "GenerationRequest",
    "RequestStatus",
    "InvalidStateTransition",
    "GeneratedImage",
    "ImageStatus",
    "QueueMessage",
]
