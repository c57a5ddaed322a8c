"""GeneratedImage repository.

Provides data access methods for GeneratedImage entities, including the
"all images for a request" secondary lookup.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teegen.core.timezone import utcnow
from teegen.models.generated_image import GeneratedImage, ImageStatus
from teegen.services.exceptions import DuplicateRecordError


class GeneratedImageRepository:
    """Repository for GeneratedImage entities.

    Records are keyed by (image_id, request_id) and looked up by request_id
    when rebuilding a results view.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, image: GeneratedImage) -> GeneratedImage:
        """Insert a new image record, failing if the key already exists.

        Raises:
            DuplicateRecordError: If (image_id, request_id) already exists
        """
        self.session.add(image)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError(
                f"Image {image.image_id} of request {image.request_id} already exists"
            ) from e
        return image

    async def get(self, image_id: str, request_id: str) -> GeneratedImage | None:
        """Retrieve image by its composite key.

        Returns:
            GeneratedImage if found, None otherwise
        """
        result = await self.session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.image_id == image_id)  # type: ignore[arg-type]
            .where(GeneratedImage.request_id == request_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, image_id: str, request_id: str) -> GeneratedImage | None:
        """Retrieve image by its composite key and lock the row until the unit of work ends.

        Status transitions read through this method so concurrent keep and discard
        actions on the same image are applied one after the other.
        """
        result = await self.session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.image_id == image_id)  # type: ignore[arg-type]
            .where(GeneratedImage.request_id == request_id)  # type: ignore[arg-type]
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_by_request(self, request_id: str) -> list[GeneratedImage]:
        """Retrieve all images of a request in display order.

        Args:
            request_id: Parent request identifier

        Returns:
            Images ordered by display_index (creation order)
        """
        result = await self.session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.request_id == request_id)  # type: ignore[arg-type]
            .order_by(GeneratedImage.display_index.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def update(self, image: GeneratedImage) -> GeneratedImage:
        """Persist field changes made through the model's transition methods."""
        self.session.add(image)
        await self.session.flush()
        return image

    async def list_expired_discarded(
        self, now: datetime | None = None, limit: int = 500
    ) -> list[GeneratedImage]:
        """Retrieve discarded images whose storage retention window has passed.

        Args:
            now: Reference time (default: current UTC time)
            limit: Maximum number of images to return

        Returns:
            Discarded images with expires_at <= now
        """
        cutoff = now or utcnow()
        result = await self.session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.status == ImageStatus.DISCARDED)  # type: ignore[arg-type]
            .where(GeneratedImage.expires_at.is_not(None))  # type: ignore[union-attr]
            .where(GeneratedImage.expires_at <= cutoff)  # type: ignore[operator]
            .order_by(GeneratedImage.expires_at.asc())  # type: ignore[union-attr]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete_by_request(self, request_id: str) -> int:
        """Delete all image records of a request (expiry cleanup only).

        Returns:
            Number of deleted records
        """
        result = await self.session.execute(
            delete(GeneratedImage).where(GeneratedImage.request_id == request_id)  # type: ignore[arg-type]
        )
        return result.rowcount  # type: ignore[attr-defined]
