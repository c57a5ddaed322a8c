"""Image generation provider interface.

Every backend implements ImageGenerator; the factory picks one at startup
from IMAGE_PROVIDER.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

SUPPORTED_ASPECT_RATIOS = ("1:1", "4:5", "5:4", "3:4", "4:3", "9:16", "16:9")


@dataclass(frozen=True)
class GenerationParams:
    """Provider-independent generation request."""

    prompt: str
    image_count: int
    aspect_ratio: str = "4:5"
    negative_prompt: Optional[str] = None
    cfg_scale: float = 8.0
    seed: Optional[int] = None

    def __post_init__(self):
        if not self.prompt:
            raise ValueError("prompt is required")
        if self.image_count < 1:
            raise ValueError(f"image_count must be positive (got {self.image_count})")
        if self.aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {self.aspect_ratio}")


@dataclass
class GenerationResult:
    """Images returned by a provider, in provider order (PNG bytes)."""

    images: list[bytes]
    provider: str
    model: str
    metadata: dict[str, Any] = field(default_factory=dict)


class ImageGenerator(ABC):
    """Capability interface implemented by every image generation backend."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Short provider name (replicate, gemini, bedrock)."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Model identifier recorded on each GenerationRequest."""

    @abstractmethod
    async def generate(self, params: GenerationParams) -> GenerationResult:
        """Generate params.image_count images.

        Raises:
            TransientError: Throttling-class failure that survived local retries
            PermanentError: Failure retrying cannot fix
        """
