"""Select the ideation backend from IDEATION_PROVIDER."""

import structlog

from teegen.core.config import Settings
from teegen.services.exceptions import ConfigurationError
from teegen.services.ideation.types import Ideator
from teegen.services.image_generation.factory import build_retry_policy
from teegen.services.storage.secrets import SecretProvider

logger = structlog.get_logger(__name__)


async def create_ideator(settings: Settings, secrets: SecretProvider) -> Ideator:
    """Construct the configured Ideator, resolving its credentials.

    Raises:
        ConfigurationError: If IDEATION_PROVIDER names an unknown backend
        SecretResolutionError: If the provider credential cannot be resolved
    """
    provider = settings.ideation_provider.lower()
    retry_policy = build_retry_policy(settings)

    if provider == "gemini":
        from teegen.services.ideation.gemini_ideator import GeminiIdeator

        api_key = await secrets.resolve(settings.gemini_api_key, settings.gemini_api_key_id)
        ideator: Ideator = GeminiIdeator(
            api_key=api_key,
            model=settings.gemini_text_model,
            retry_policy=retry_policy,
        )
    elif provider == "anthropic":
        from teegen.services.ideation.anthropic_ideator import AnthropicIdeator

        api_key = await secrets.resolve(settings.anthropic_api_key, settings.anthropic_api_key_id)
        ideator = AnthropicIdeator(
            api_key=api_key,
            model=settings.anthropic_model,
            retry_policy=retry_policy,
        )
    else:
        raise ConfigurationError(f"Unsupported IDEATION_PROVIDER: {settings.ideation_provider}")

    logger.info("ideator.configured", provider=ideator.provider_id, model=ideator.model_id)
    return ideator
