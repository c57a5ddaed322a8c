"""Select the image generation backend from IMAGE_PROVIDER."""

import structlog

from teegen.core.config import Settings
from teegen.services.exceptions import ConfigurationError
from teegen.services.image_generation.retry import RetryPolicy
from teegen.services.image_generation.types import ImageGenerator
from teegen.services.storage.secrets import SecretProvider

logger = structlog.get_logger(__name__)


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.provider_max_attempts,
        base_delay=settings.provider_retry_base_delay,
        max_delay=settings.provider_retry_max_delay,
    )


async def create_image_generator(settings: Settings, secrets: SecretProvider) -> ImageGenerator:
    """Construct the configured ImageGenerator, resolving its credentials.

    Raises:
        ConfigurationError: If IMAGE_PROVIDER names an unknown backend
        SecretResolutionError: If the provider credential cannot be resolved
    """
    provider = settings.image_provider.lower()
    retry_policy = build_retry_policy(settings)

    if provider == "replicate":
        from teegen.services.image_generation.replicate_client import ReplicateImageGenerator

        api_token = await secrets.resolve(
            settings.replicate_api_token, settings.replicate_api_token_id
        )
        generator: ImageGenerator = ReplicateImageGenerator(
            api_token=api_token,
            model_version=settings.replicate_model_version,
            retry_policy=retry_policy,
        )
    elif provider == "gemini":
        from teegen.services.image_generation.gemini_provider import GeminiImageGenerator

        api_key = await secrets.resolve(settings.gemini_api_key, settings.gemini_api_key_id)
        generator = GeminiImageGenerator(
            api_key=api_key,
            model=settings.gemini_image_model,
            retry_policy=retry_policy,
        )
    elif provider == "bedrock":
        from teegen.services.image_generation.bedrock_provider import BedrockImageGenerator

        generator = BedrockImageGenerator(
            model_id=settings.bedrock_model_id,
            region=settings.aws_region,
            cfg_scale=settings.bedrock_cfg_scale,
            retry_policy=retry_policy,
        )
    else:
        raise ConfigurationError(f"Unsupported IMAGE_PROVIDER: {settings.image_provider}")

    logger.info("image_generator.configured", provider=generator.provider_id, model=generator.model_id)
    return generator
