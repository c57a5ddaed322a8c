"""Replicate API image generator with error classification."""

import asyncio
from typing import Any

import httpx
import replicate
import structlog
from replicate.exceptions import ReplicateError as ReplicateAPIError

from teegen.services.exceptions import ProviderError, ServiceError
from teegen.services.image_generation.retry import RetryPolicy, classify_error, with_retry
from teegen.services.image_generation.types import GenerationParams, GenerationResult, ImageGenerator

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "black-forest-labs/flux-schnell"


class ReplicateImageGenerator(ImageGenerator):
    """ImageGenerator backed by a Replicate model (FLUX by default).

    One prediction per image, sequential, each wrapped in throttling retry.
    """

    def __init__(
        self,
        api_token: str,
        model_version: str = DEFAULT_MODEL,
        retry_policy: RetryPolicy | None = None,
        client: Any = None,
    ):
        """Initialize Replicate generator.

        Args:
            api_token: Replicate API authentication token
            model_version: Model identifier (owner/name or owner/name:version)
            retry_policy: Backoff for throttling errors
            client: Preconfigured replicate.Client (tests pass a fake)
        """
        if not api_token and client is None:
            raise ProviderError("REPLICATE_API_TOKEN not configured")
        self._model = model_version or DEFAULT_MODEL
        self._client = client or replicate.Client(api_token=api_token)
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def provider_id(self) -> str:
        return "replicate"

    @property
    def model_id(self) -> str:
        return self._model

    async def _read_output(self, output: Any) -> bytes:
        """Turn a Replicate output item (FileOutput or URL string) into bytes."""
        if isinstance(output, list):
            if not output:
                raise ProviderError("Replicate returned no output")
            output = output[0]
        if hasattr(output, "read"):
            return await asyncio.to_thread(output.read)
        if isinstance(output, str):
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(output)
                response.raise_for_status()
                return response.content
        raise ProviderError(f"Unexpected output format from Replicate: {type(output)}")

    async def _generate_one(self, params: GenerationParams, index: int) -> bytes:
        model_input: dict[str, Any] = {
            "prompt": params.prompt,
            "num_outputs": 1,
            "output_format": "png",
            "aspect_ratio": params.aspect_ratio,
        }
        if params.seed is not None:
            model_input["seed"] = params.seed + index

        try:
            output = await asyncio.to_thread(self._client.run, self._model, input=model_input)
            return await self._read_output(output)
        except ServiceError:
            raise
        except ReplicateAPIError as e:
            raise classify_error(e, getattr(e, "status", None)) from e
        except (ConnectionError, OSError, TimeoutError, httpx.HTTPError) as e:
            raise classify_error(e) from e
        except Exception as e:
            # Unexpected errors are treated as permanent to avoid retry loops
            raise ProviderError(f"Unexpected error: {e}") from e

    async def generate(self, params: GenerationParams) -> GenerationResult:
        images = []
        for index in range(params.image_count):
            image = await with_retry(
                lambda: self._generate_one(params, index),
                self._retry_policy,
                f"replicate.generate ({index + 1}/{params.image_count})",
            )
            images.append(image)

        logger.info("replicate.generation.completed", model=self._model, image_count=len(images))
        return GenerationResult(images=images, provider=self.provider_id, model=self._model)
