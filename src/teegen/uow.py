"""Unit of Work pattern for teegen.

Provides transaction management with automatic commit/rollback and access to all repositories.
"""

from typing import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teegen.repositories.generated_image import GeneratedImageRepository
from teegen.repositories.generation_request import GenerationRequestRepository
from teegen.repositories.queue_message import QueueMessageRepository

logger = structlog.get_logger(__name__)


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages database transactions and provides access to all repositories.
    Use as async context manager for automatic commit/rollback.

    Because the work queues live in the same database as the metadata records,
    a request insert and its job enqueue commit atomically.

    Example:
        async with await uow_factory() as uow:
            await uow.requests.add(request)
            await uow.queue.send("generation", job.model_dump(mode="json"))
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: AsyncSession):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

        self.requests = GenerationRequestRepository(session)
        self.images = GeneratedImageRepository(session)
        self.queue = QueueMessageRepository(session)

    async def __aenter__(self):
        """Enter async context manager.

        Returns:
            self: UnitOfWork instance with all repositories available
        """
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager with automatic commit/rollback.

        The session is closed in both cases so its connection returns to the pool.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.debug("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


UowFactory = Callable[[], Awaitable[UnitOfWork]]


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> UowFactory:
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        session_factory = setup_db_session(db_url, pool_size=20)
        uow_factory = create_uow_factory(session_factory)

        async with await uow_factory() as uow:
            await uow.requests.add(request)
    """

    async def _create_uow() -> UnitOfWork:
        """Create a new UnitOfWork instance with a new session."""
        session = session_factory()
        return UnitOfWork(session)

    return _create_uow
