"""
Video database repository - CRUD, listing and counter operations for the videos table.
"""
from typing import Optional, Sequence
from sqlalchemy import select, delete, update as sql_update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.database.models.video import Video
from marketplace.database.models.engagement import Like
from marketplace.database.models.enums import VideoStatus


def publicly_visible() -> list:
    """Conditions a video must meet to appear in public listings and search."""
    return [Video.status == VideoStatus.PUBLISHED.value, Video.is_public.is_(True)]


def like_count_column():
    """Correlated like count, usable in ORDER BY."""
    return (
        select(func.count(Like.id))
        .where(Like.video_id == Video.id)
        .correlate(Video)
        .scalar_subquery()
    )


async def create(session: AsyncSession, **fields) -> Video:
    """
    Create a new video record.

    Args:
        session: Async database session
        **fields: Column values (creator_id, title, video_url, ai_model, category, style, ...)

    Returns:
        Created Video instance
    """
    video = Video(**fields)
    session.add(video)
    await session.flush()
    await session.refresh(video)
    return video


async def get_by_id(session: AsyncSession, id: str) -> Optional[Video]:
    return await session.get(Video, id)


async def get_with_creator(session: AsyncSession, id: str) -> Optional[Video]:
    """Get a video with its creator user loaded."""
    stmt = select(Video).options(selectinload(Video.creator)).where(Video.id == id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def update(session: AsyncSession, id: str, **fields) -> Optional[Video]:
    """
    Update a video record.

    Returns:
        Updated Video instance or None if not found
    """
    video = await session.get(Video, id)
    if video is None:
        return None
    for key, value in fields.items():
        setattr(video, key, value)
    await session.flush()
    return video


async def delete_by_id(session: AsyncSession, id: str) -> bool:
    """
    Delete a video by its ID.

    Returns:
        True if deleted, False if not found
    """
    stmt = delete(Video).where(Video.id == id)
    result = await session.execute(stmt)
    return result.rowcount > 0


async def increment_views(session: AsyncSession, id: str) -> None:
    stmt = sql_update(Video).where(Video.id == id).values(views=Video.views + 1)
    await session.execute(stmt)


async def record_sale(session: AsyncSession, id: str, gross_amount: float) -> bool:
    """Add one sale and its gross amount to the video's counters."""
    stmt = (
        sql_update(Video)
        .where(Video.id == id)
        .values(purchases=Video.purchases + 1, revenue=Video.revenue + gross_amount)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def list_videos(
    session: AsyncSession,
    conditions: Sequence,
    order_by: Sequence,
    limit: int,
    offset: int = 0,
) -> tuple[list[Video], int]:
    """
    Page through videos matching conditions, creators preloaded.

    Returns:
        (videos on this page, total matching count)
    """
    stmt = (
        select(Video)
        .options(selectinload(Video.creator))
        .where(*conditions)
        .order_by(*order_by, Video.id)
        .limit(limit)
        .offset(offset)
    )
    count_stmt = select(func.count(Video.id)).where(*conditions)

    result = await session.execute(stmt)
    videos = list(result.scalars().all())
    total = (await session.execute(count_stmt)).scalar_one()
    return videos, total


async def list_by_creator(
    session: AsyncSession,
    creator_id: str,
    include_unpublished: bool,
    limit: int,
    offset: int = 0,
) -> tuple[list[Video], int]:
    conditions = [Video.creator_id == creator_id]
    if not include_unpublished:
        conditions.extend(publicly_visible())
    return await list_videos(
        session,
        conditions=conditions,
        order_by=[Video.created_at.desc()],
        limit=limit,
        offset=offset,
    )


async def top_tags(session: AsyncSession, sample_size: int = 50) -> list[list[str]]:
    """Tag lists of the most viewed public videos."""
    stmt = (
        select(Video.tags)
        .where(*publicly_visible())
        .order_by(Video.views.desc())
        .limit(sample_size)
    )
    result = await session.execute(stmt)
    return [tags or [] for tags in result.scalars().all()]
