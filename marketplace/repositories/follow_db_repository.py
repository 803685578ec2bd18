"""
Follow database repository - follow toggles and follower counts.
"""
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.engagement import Follow


async def get(session: AsyncSession, follower_id: str, following_id: str) -> Optional[Follow]:
    stmt = select(Follow).where(
        Follow.follower_id == follower_id,
        Follow.following_id == following_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def toggle(session: AsyncSession, follower_id: str, following_id: str) -> bool:
    """
    Flip the follow state.

    Returns:
        True if now following, False if unfollowed
    """
    existing = await get(session, follower_id, following_id)
    if existing is not None:
        await session.delete(existing)
        await session.flush()
        return False

    session.add(Follow(follower_id=follower_id, following_id=following_id))
    await session.flush()
    return True


async def count_followers(session: AsyncSession, user_id: str) -> int:
    stmt = select(func.count(Follow.id)).where(Follow.following_id == user_id)
    return (await session.execute(stmt)).scalar_one()


async def count_following(session: AsyncSession, user_id: str) -> int:
    stmt = select(func.count(Follow.id)).where(Follow.follower_id == user_id)
    return (await session.execute(stmt)).scalar_one()


def follower_count_column(user_id_column):
    """Correlated follower count for a users.id column, usable in ORDER BY."""
    return (
        select(func.count(Follow.id))
        .where(Follow.following_id == user_id_column)
        .scalar_subquery()
    )
