"""Google Imagen image generator (google-genai SDK)."""

import asyncio
from typing import Any

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from teegen.services.exceptions import ContentPolicyError, ProviderError, ServiceError
from teegen.services.image_generation.retry import RetryPolicy, classify_error, with_retry
from teegen.services.image_generation.types import GenerationParams, GenerationResult, ImageGenerator

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "imagen-4.0-generate-001"

# Imagen supports 1:1, 3:4, 4:3, 9:16 and 16:9; portrait print ratios map to the closest one
IMAGEN_ASPECT_RATIOS = {
    "1:1": "1:1",
    "4:5": "3:4",
    "3:4": "3:4",
    "5:4": "4:3",
    "4:3": "4:3",
    "9:16": "9:16",
    "16:9": "16:9",
}


class GeminiImageGenerator(ImageGenerator):
    """ImageGenerator backed by Imagen through the Gemini API.

    Images are requested one at a time with a short pause between calls to
    stay under per-minute quotas.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        retry_policy: RetryPolicy | None = None,
        client: Any = None,
        pause_seconds: float = 1.0,
    ):
        if not api_key and client is None:
            raise ProviderError("GEMINI_API_KEY not configured")
        self._model = model or DEFAULT_MODEL
        self._client = client or genai.Client(api_key=api_key)
        self._retry_policy = retry_policy or RetryPolicy()
        self._pause_seconds = pause_seconds

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def model_id(self) -> str:
        return self._model

    async def _generate_one(self, prompt: str, aspect_ratio: str) -> bytes:
        try:
            response = await self._client.aio.models.generate_images(
                model=self._model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=aspect_ratio,
                    output_mime_type="image/png",
                ),
            )
        except genai_errors.APIError as e:
            raise classify_error(e, getattr(e, "code", None)) from e
        except (ConnectionError, TimeoutError, OSError) as e:
            raise classify_error(e) from e

        generated = response.generated_images or []
        for item in generated:
            if item.image is not None and item.image.image_bytes:
                return item.image.image_bytes

        reason = generated[0].rai_filtered_reason if generated else None
        if reason:
            raise ContentPolicyError(f"Image blocked by safety filters: {reason}")
        raise ProviderError("Imagen returned no image")

    async def generate(self, params: GenerationParams) -> GenerationResult:
        # Imagen has no reliable negative prompt, so avoidance guidance is folded into the prompt
        prompt = params.prompt
        if params.negative_prompt:
            prompt = f"{prompt}\n\n{params.negative_prompt}"
        aspect_ratio = IMAGEN_ASPECT_RATIOS.get(params.aspect_ratio, "1:1")

        images: list[bytes] = []
        for index in range(params.image_count):
            try:
                image = await with_retry(
                    lambda: self._generate_one(prompt, aspect_ratio),
                    self._retry_policy,
                    f"gemini.generate ({index + 1}/{params.image_count})",
                )
            except ServiceError:
                logger.error(
                    "gemini.generation.failed",
                    model=self._model,
                    index=index,
                    completed=len(images),
                )
                raise
            images.append(image)
            if index < params.image_count - 1 and self._pause_seconds:
                await asyncio.sleep(self._pause_seconds)

        logger.info("gemini.generation.completed", model=self._model, image_count=len(images))
        return GenerationResult(
            images=images,
            provider=self.provider_id,
            model=self._model,
            metadata={"aspect_ratio": aspect_ratio},
        )
