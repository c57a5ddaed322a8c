"""S3 artifact store for generated images.

Objects live under two key namespaces:
- temp/{request_id}/{image_id}.png: freshly generated, reclaimed by cleanup once discarded
- saved/{user_id}/{request_id}/{image_id}.png: promoted by a keep action
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from teegen.core.timezone import utcnow
from teegen.services.exceptions import StorageError

logger = structlog.get_logger(__name__)


def temp_key(request_id: str, image_id: str) -> str:
    return f"temp/{request_id}/{image_id}.png"


def saved_key(user_id: str, request_id: str, image_id: str) -> str:
    return f"saved/{user_id}/{request_id}/{image_id}.png"


class S3ArtifactStore:
    """Artifact store backed by one S3 bucket, optionally fronted by a CDN.

    boto3 is synchronous, so every call runs in a worker thread.
    """

    def __init__(
        self,
        bucket: str,
        cdn_domain: str = "",
        presign_expiry_seconds: int = 604800,
        client: Any = None,
        region: str | None = None,
        endpoint_url: str | None = None,
    ):
        """Initialize artifact store.

        Args:
            bucket: Bucket holding all artifacts
            cdn_domain: CDN domain serving the bucket (empty: use presigned URLs)
            presign_expiry_seconds: Lifetime of presigned retrieval URLs
            client: Preconfigured boto3 S3 client (tests pass a stubbed one)
            region: AWS region when creating the client
            endpoint_url: Custom S3 endpoint (MinIO, LocalStack)
        """
        self.bucket = bucket
        self.cdn_domain = cdn_domain
        self.presign_expiry_seconds = presign_expiry_seconds
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            config=Config(signature_version="s3v4"),
        )

    async def _run(self, operation: str, func, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(func, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 {operation} failed: {e}") from e

    async def put(self, key: str, data: bytes, content_type: str = "image/png") -> None:
        """Store bytes under key (overwrites)."""
        await self._run(
            "put_object",
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        logger.info("storage.put", key=key, size=len(data))

    async def copy(self, source_key: str, destination_key: str) -> None:
        """Copy an object within the bucket.

        Copying a key onto itself is a no-op, so re-applied promotions are harmless.
        """
        if source_key == destination_key:
            logger.debug("storage.copy_skipped", key=source_key)
            return
        await self._run(
            "copy_object",
            self.client.copy_object,
            Bucket=self.bucket,
            CopySource={"Bucket": self.bucket, "Key": source_key},
            Key=destination_key,
        )
        logger.info("storage.copied", source_key=source_key, destination_key=destination_key)

    async def delete(self, key: str) -> None:
        """Delete an object (deleting a missing key succeeds)."""
        await self._run("delete_object", self.client.delete_object, Bucket=self.bucket, Key=key)
        logger.info("storage.deleted", key=key)

    async def presign(self, key: str, expires_in: int | None = None) -> str:
        """Create a time-limited GET URL for key."""
        return await self._run(
            "generate_presigned_url",
            self.client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in or self.presign_expiry_seconds,
        )

    def public_url(self, key: str) -> str:
        """Permanent CDN URL for key.

        Raises:
            StorageError: If no CDN domain is configured
        """
        if not self.cdn_domain:
            raise StorageError("IMAGES_CDN_DOMAIN is not configured")
        return f"https://{self.cdn_domain}/{key}"

    async def retrieval_url(self, key: str) -> tuple[str, datetime | None]:
        """Best available URL for key and its expiry (None for permanent CDN URLs)."""
        if self.cdn_domain:
            return self.public_url(key), None
        url = await self.presign(key)
        return url, utcnow() + timedelta(seconds=self.presign_expiry_seconds)
