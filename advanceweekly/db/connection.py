"""Database connection management for AdvanceWeekly."""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from advanceweekly.config import settings

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Anything that opens a committing session, e.g. ``get_session`` or a test double
SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def session_scope(factory: async_sessionmaker) -> SessionFactory:
    """Build a ``get_session``-style context manager over another session maker."""

    @asynccontextmanager
    async def _scope() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _scope


# Get an async database session that commits on success
get_session: SessionFactory = session_scope(async_session_factory)
