"""Repository layer for teegen.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from teegen.repositories.generated_image import GeneratedImageRepository
from teegen.repositories.generation_request import GenerationRequestRepository
from teegen.repositories.queue_message import QueueMessageRepository

__all__ = [
    "GenerationRequestRepository",
    "GeneratedImageRepository",
    "QueueMessageRepository",
]
