"""Database session factory setup."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool


def setup_db_session(db_url: str, pool_size: int = 20) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    Args:
        db_url: Database connection URL (postgresql+psycopg://... in deployments,
            sqlite+aiosqlite:///... for local runs and tests)
        pool_size: Maximum number of connections in the pool (default: 20)

    Returns:
        Async session factory for creating database sessions
    """
    if db_url.startswith("sqlite"):
        # SQLite has no server-side pool; every session opens its own connection
        engine = create_async_engine(db_url, poolclass=NullPool, echo=False)
    else:
        engine = create_async_engine(
            db_url,
            pool_size=pool_size,
            max_overflow=0,  # No overflow beyond pool_size
            pool_pre_ping=True,  # Verify connections before using
            echo=False,  # Don't log SQL queries (use structlog instead)
        )

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )

    return session_factory
