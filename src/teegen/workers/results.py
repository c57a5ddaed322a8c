"""Rebuild the results view of a request from its current records."""

from typing import Any

import structlog

from teegen.core.timezone import utcnow
from teegen.models.generated_image import GeneratedImage, ImageStatus
from teegen.services.slack.messages import ImageView, build_results_view
from teegen.services.storage.artifact_store import S3ArtifactStore

logger = structlog.get_logger(__name__)


async def image_view(artifacts: S3ArtifactStore, image: GeneratedImage) -> ImageView:
    """Describe one record for the results view.

    Kept images reuse their stored retrieval URL while it is valid; everything
    else gets a fresh URL for its current storage key.
    """
    if image.status == ImageStatus.DISCARDED:
        return ImageView(image_id=image.image_id, image_url="", status=image.status.value)

    url = image.retrieval_url
    if not url or (image.retrieval_url_expiry is not None and image.retrieval_url_expiry <= utcnow()):
        url, _ = await artifacts.retrieval_url(image.storage_key)

    return ImageView(
        image_id=image.image_id,
        image_url=url,
        status=image.status.value,
        download_url=url if image.status == ImageStatus.KEPT else None,
    )


async def render_results(
    artifacts: S3ArtifactStore,
    prompt: str,
    request_id: str,
    images: list[GeneratedImage],
) -> dict[str, Any]:
    """Message body (text + blocks) for the results view."""
    views = [await image_view(artifacts, image) for image in sorted(images, key=lambda i: i.display_index)]
    return {
        "text": f"Generated images for: {prompt}",
        "blocks": build_results_view(prompt, views, request_id),
    }
