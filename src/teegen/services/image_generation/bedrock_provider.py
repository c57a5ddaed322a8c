"""Amazon Bedrock image generator for Titan and Stability SDXL (boto3 bedrock-runtime)."""

import asyncio
import base64
import json
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from teegen.services.exceptions import ContentPolicyError, ProviderError
from teegen.services.image_generation.retry import RetryPolicy, classify_error, with_retry
from teegen.services.image_generation.types import GenerationParams, GenerationResult, ImageGenerator

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "amazon.titan-image-generator-v2:0"
SDXL_MODEL = "stability.stable-diffusion-xl-v1"
SDXL_STEPS = 50

# Titan only accepts fixed dimension pairs
TITAN_DIMENSIONS = {
    "1:1": (1024, 1024),
    "4:5": (896, 1152),
    "5:4": (1152, 896),
    "3:4": (768, 1024),
    "4:3": (1024, 768),
    "9:16": (768, 1408),
    "16:9": (1408, 768),
}

# SDXL 1.0 dimensions closest to each supported ratio
SDXL_DIMENSIONS = {
    "1:1": (1024, 1024),
    "4:5": (896, 1152),
    "5:4": (1152, 896),
    "3:4": (896, 1152),
    "4:3": (1152, 896),
    "9:16": (768, 1344),
    "16:9": (1344, 768),
}

_THROTTLING_CODES = {"ThrottlingException", "ServiceQuotaExceededException", "TooManyRequestsException"}
_UNAVAILABLE_CODES = {"ServiceUnavailableException", "ModelNotReadyException", "ModelTimeoutException"}


def classify_bedrock_error(exception: Exception) -> Exception:
    """Map a botocore error onto the service error hierarchy."""
    if isinstance(exception, ClientError):
        error = exception.response.get("Error", {})
        code = error.get("Code", "")
        status = exception.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in _THROTTLING_CODES:
            return classify_error(exception, 429)
        if code in _UNAVAILABLE_CODES:
            return classify_error(exception, 503)
        if code == "ValidationException" and "blocked" in error.get("Message", "").lower():
            return ContentPolicyError(f"Content policy violation: {error.get('Message')}")
        return classify_error(exception, status)
    return classify_error(exception)


class BedrockImageGenerator(ImageGenerator):
    """ImageGenerator backed by Amazon Titan Image Generator or Stability SDXL.

    The model id selects the request format. Titan returns every requested image
    from a single invocation; SDXL is invoked once per image with an incrementing
    seed and a short pause between calls.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL,
        region: str | None = None,
        cfg_scale: float = 8.0,
        retry_policy: RetryPolicy | None = None,
        client: Any = None,
        pause_seconds: float = 1.0,
    ):
        self._model = model_id or DEFAULT_MODEL
        self._cfg_scale = cfg_scale
        self._pause_seconds = pause_seconds
        self._retry_policy = retry_policy or RetryPolicy()
        # SDK-level retries are disabled; throttling is handled by with_retry
        self._client = client or boto3.client(
            "bedrock-runtime",
            region_name=region,
            config=Config(retries={"max_attempts": 1, "mode": "standard"}),
        )

    @property
    def provider_id(self) -> str:
        return "bedrock"

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def is_sdxl(self) -> bool:
        return self._model.startswith("stability.")

    def _request_body(self, params: GenerationParams) -> dict[str, Any]:
        width, height = TITAN_DIMENSIONS.get(params.aspect_ratio, (1024, 1024))
        text_params: dict[str, Any] = {"text": params.prompt[:512]}
        if params.negative_prompt:
            text_params["negativeText"] = params.negative_prompt[:512]
        config: dict[str, Any] = {
            "numberOfImages": params.image_count,
            "width": width,
            "height": height,
            "cfgScale": params.cfg_scale or self._cfg_scale,
        }
        if params.seed is not None:
            config["seed"] = params.seed
        return {
            "taskType": "TEXT_IMAGE",
            "textToImageParams": text_params,
            "imageGenerationConfig": config,
        }

    async def _invoke(self, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await asyncio.to_thread(
                self._client.invoke_model,
                modelId=self._model,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body),
            )
        except (ClientError, BotoCoreError) as e:
            raise classify_bedrock_error(e) from e
        return json.loads(response["body"].read())

    def _sdxl_request_body(self, params: GenerationParams, index: int) -> dict[str, Any]:
        width, height = SDXL_DIMENSIONS.get(params.aspect_ratio, (1024, 1024))
        text_prompts = [{"text": params.prompt, "weight": 1.0}]
        if params.negative_prompt:
            text_prompts.append({"text": params.negative_prompt, "weight": -1.0})
        body: dict[str, Any] = {
            "text_prompts": text_prompts,
            "cfg_scale": params.cfg_scale or self._cfg_scale,
            "width": width,
            "height": height,
            "samples": 1,
            "steps": SDXL_STEPS,
        }
        if params.seed is not None:
            body["seed"] = params.seed + index
        return body

    async def _generate_sdxl(self, params: GenerationParams) -> list[bytes]:
        images = []
        for index in range(params.image_count):
            body = self._sdxl_request_body(params, index)
            payload = await with_retry(
                lambda: self._invoke(body),
                self._retry_policy,
                f"bedrock.sdxl.generate ({index + 1}/{params.image_count})",
            )

            artifacts = payload.get("artifacts") or []
            if not artifacts:
                raise ProviderError(f"SDXL returned no artifacts for image {index}")
            if artifacts[0].get("finishReason") == "CONTENT_FILTERED":
                raise ContentPolicyError("Content policy violation: SDXL filtered the image")
            images.append(base64.b64decode(artifacts[0]["base64"]))

            if index < params.image_count - 1 and self._pause_seconds > 0:
                await asyncio.sleep(self._pause_seconds)
        return images

    async def generate(self, params: GenerationParams) -> GenerationResult:
        if self.is_sdxl:
            images = await self._generate_sdxl(params)
            logger.info("bedrock.generation.completed", model=self._model, image_count=len(images))
            return GenerationResult(images=images, provider=self.provider_id, model=self._model)

        body = self._request_body(params)
        payload = await with_retry(
            lambda: self._invoke(body), self._retry_policy, "bedrock.titan.generate"
        )

        if payload.get("error"):
            raise ProviderError(f"Titan error: {payload['error']}")
        encoded = payload.get("images") or []
        if not encoded:
            raise ProviderError("Titan returned no images")

        images = [base64.b64decode(image) for image in encoded]
        logger.info("bedrock.generation.completed", model=self._model, image_count=len(images))
        return GenerationResult(images=images, provider=self.provider_id, model=self._model)
