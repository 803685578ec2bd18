"""
Creator database repository - profile lookup and earnings counters.
"""
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.creator import Creator


async def get_by_user_id(session: AsyncSession, user_id: str) -> Optional[Creator]:
    stmt = select(Creator).where(Creator.user_id == user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create(session: AsyncSession, user_id: str) -> Creator:
    """
    Get the creator profile for a user, creating an empty one on first use.
    """
    creator = await get_by_user_id(session, user_id)
    if creator is not None:
        return creator

    creator = Creator(user_id=user_id, specialties=[])
    session.add(creator)
    await session.flush()
    await session.refresh(creator)
    return creator


async def increment_total_videos(session: AsyncSession, user_id: str, delta: int = 1) -> None:
    stmt = (
        update(Creator)
        .where(Creator.user_id == user_id)
        .values(total_videos=Creator.total_videos + delta)
    )
    await session.execute(stmt)


async def credit_earnings(
    session: AsyncSession,
    user_id: str,
    net_amount: float,
    gross_amount: float = 0.0,
    purchases: int = 0,
) -> bool:
    """
    Credit a creator's earnings.

    Args:
        session: Async database session
        user_id: The creator's user id
        net_amount: Amount after platform fee, added to total and monthly earnings
        gross_amount: Amount added to lifetime revenue
        purchases: Number of completed purchases to add

    Returns:
        True if a creator profile was updated
    """
    stmt = (
        update(Creator)
        .where(Creator.user_id == user_id)
        .values(
            total_earnings=Creator.total_earnings + net_amount,
            monthly_earnings=Creator.monthly_earnings + net_amount,
            lifetime_revenue=Creator.lifetime_revenue + gross_amount,
            total_purchases=Creator.total_purchases + purchases,
        )
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def set_specialties(session: AsyncSession, user_id: str, specialties: list[str]) -> Creator:
    creator = await get_or_create(session, user_id)
    creator.specialties = list(specialties)
    await session.flush()
    return creator
