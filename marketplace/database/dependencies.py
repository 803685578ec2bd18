"""
FastAPI dependencies for database session injection.
"""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.database.session import get_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session.

    The session is committed on success or rolled back on error.
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    FastAPI dependency for handlers that open one session per unit of work
    (webhook sub-handlers commit or roll back independently).
    """
    return get_session_factory()
