"""
Like database repository - like toggles and derived like counts.
"""
from typing import Optional, Iterable
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.database.models.engagement import Like
from marketplace.database.models.video import Video


async def get(session: AsyncSession, user_id: str, video_id: str) -> Optional[Like]:
    stmt = select(Like).where(Like.user_id == user_id, Like.video_id == video_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def toggle(session: AsyncSession, user_id: str, video_id: str) -> bool:
    """
    Flip the like state for a user/video pair.

    Returns:
        True if the video is now liked, False if the like was removed
    """
    existing = await get(session, user_id, video_id)
    if existing is not None:
        await session.delete(existing)
        await session.flush()
        return False

    session.add(Like(user_id=user_id, video_id=video_id))
    await session.flush()
    return True


async def count_for_video(session: AsyncSession, video_id: str) -> int:
    stmt = select(func.count(Like.id)).where(Like.video_id == video_id)
    return (await session.execute(stmt)).scalar_one()


async def counts_for_videos(session: AsyncSession, video_ids: Iterable[str]) -> dict[str, int]:
    """Like counts keyed by video id; videos without likes are omitted."""
    ids = list(video_ids)
    if not ids:
        return {}
    stmt = (
        select(Like.video_id, func.count(Like.id))
        .where(Like.video_id.in_(ids))
        .group_by(Like.video_id)
    )
    result = await session.execute(stmt)
    return {video_id: count for video_id, count in result.all()}


async def count_for_creator(session: AsyncSession, creator_id: str) -> int:
    stmt = (
        select(func.count(Like.id))
        .join(Video, Video.id == Like.video_id)
        .where(Video.creator_id == creator_id)
    )
    return (await session.execute(stmt)).scalar_one()


async def list_by_user(session: AsyncSession, user_id: str) -> list[Like]:
    """A user's likes, newest first, with each video and its creator loaded."""
    stmt = (
        select(Like)
        .options(selectinload(Like.video).selectinload(Video.creator))
        .where(Like.user_id == user_id)
        .order_by(Like.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
