"""Process-wide collaborators shared by routes, workers and the CLI.

Constructed once in the application lifespan (or a CLI entry point) and passed
explicitly; tests build one from fakes.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teegen.core.config import Settings
from teegen.services.ideation.types import Ideator
from teegen.services.image_generation.types import ImageGenerator
from teegen.services.queue import QueueName, WorkQueue, queue_config
from teegen.services.slack.client import SlackClient
from teegen.services.storage.artifact_store import S3ArtifactStore
from teegen.services.storage.secrets import SecretProvider
from teegen.uow import UowFactory, create_uow_factory

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    uow_factory: UowFactory
    artifacts: S3ArtifactStore
    slack: SlackClient
    secrets: SecretProvider
    image_generator: Optional[ImageGenerator] = None
    ideator: Optional[Ideator] = None
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def queue(self, name: QueueName) -> WorkQueue:
        return WorkQueue(self.uow_factory, queue_config(self.settings, name))

    async def signing_secret(self) -> str:
        return await self.secrets.resolve(
            self.settings.slack_signing_secret, self.settings.slack_signing_secret_id
        )

    async def bot_token(self) -> str:
        return await self.secrets.resolve(
            self.settings.slack_bot_token, self.settings.slack_bot_token_id
        )

    async def aclose(self) -> None:
        await self.slack.aclose()


async def build_context(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    with_providers: bool = True,
) -> AppContext:
    """Build the production context.

    Args:
        settings: Application settings
        session_factory: Database session factory
        with_providers: Construct the image generator and ideator (the CLI skips them)
    """
    from teegen.services.ideation.factory import create_ideator
    from teegen.services.image_generation.factory import create_image_generator

    secrets = SecretProvider(ttl_seconds=settings.secret_cache_ttl_seconds, region=settings.aws_region)
    artifacts = S3ArtifactStore(
        bucket=settings.images_bucket,
        cdn_domain=settings.images_cdn_domain,
        presign_expiry_seconds=settings.presigned_url_expiry_seconds,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
    )
    context = AppContext(
        settings=settings,
        uow_factory=create_uow_factory(session_factory),
        artifacts=artifacts,
        slack=SlackClient(token_provider=lambda: context.bot_token(), base_url=settings.slack_api_base_url),
        secrets=secrets,
        session_factory=session_factory,
    )

    if with_providers:
        context.image_generator = await create_image_generator(settings, secrets)
        if settings.ideation_enabled:
            context.ideator = await create_ideator(settings, secrets)

    return context
