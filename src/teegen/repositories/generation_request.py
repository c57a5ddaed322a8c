"""GenerationRequest repository.

Provides data access methods for GenerationRequest entities with conditional-insert
semantics for duplicate prevention.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teegen.core.timezone import utcnow
from teegen.models.generation_request import GenerationRequest
from teegen.services.exceptions import DuplicateRecordError


class GenerationRequestRepository:
    """Repository for GenerationRequest entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, request: GenerationRequest) -> GenerationRequest:
        """Insert a new request, failing if request_id already exists.

        Args:
            request: GenerationRequest entity to persist

        Returns:
            Persisted request

        Raises:
            DuplicateRecordError: If a request with the same request_id exists.
                The session must be rolled back afterwards (the UoW does this).
        """
        self.session.add(request)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError(f"Request {request.request_id} already exists") from e
        return request

    async def get_by_id(self, request_id: str) -> GenerationRequest | None:
        """Retrieve request by request_id.

        Args:
            request_id: Request's unique identifier

        Returns:
            GenerationRequest if found, None otherwise
        """
        result = await self.session.execute(
            select(GenerationRequest).where(GenerationRequest.request_id == request_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def update(self, request: GenerationRequest) -> GenerationRequest:
        """Persist field changes made through the model's transition methods."""
        request.updated_at = utcnow()
        self.session.add(request)
        await self.session.flush()
        return request

    async def list_expired(self, now: datetime | None = None, limit: int = 500) -> list[GenerationRequest]:
        """Retrieve requests whose cleanup horizon has passed.

        Args:
            now: Reference time (default: current UTC time)
            limit: Maximum number of requests to return

        Returns:
            Expired requests, oldest first
        """
        cutoff = now or utcnow()
        result = await self.session.execute(
            select(GenerationRequest)
            .where(GenerationRequest.expires_at.is_not(None))  # type: ignore[union-attr]
            .where(GenerationRequest.expires_at <= cutoff)  # type: ignore[operator]
            .order_by(GenerationRequest.expires_at.asc())  # type: ignore[union-attr]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete(self, request_id: str) -> None:
        """Delete a request record (expiry cleanup only)."""
        await self.session.execute(
            delete(GenerationRequest).where(GenerationRequest.request_id == request_id)  # type: ignore[arg-type]
        )
