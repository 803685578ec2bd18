"""
Collection database repository.
"""
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.collection import Collection, collection_videos
from marketplace.database.base import utcnow
from marketplace.database.models.video import Video


async def create(
    session: AsyncSession,
    user_id: str,
    name: str,
    description: Optional[str] = None,
    is_public: bool = False,
) -> Collection:
    collection = Collection(
        user_id=user_id,
        name=name,
        description=description,
        is_public=is_public,
        videos=[],
    )
    session.add(collection)
    await session.flush()
    return collection


async def list_by_user_with_counts(session: AsyncSession, user_id: str) -> list[tuple[Collection, int]]:
    """A user's collections, most recently updated first, with their video counts."""
    video_count = (
        select(func.count())
        .select_from(collection_videos)
        .where(collection_videos.c.collection_id == Collection.id)
        .correlate(Collection)
        .scalar_subquery()
    )
    stmt = (
        select(Collection, video_count)
        .where(Collection.user_id == user_id)
        .order_by(Collection.updated_at.desc())
    )
    result = await session.execute(stmt)
    return [(collection, count) for collection, count in result.all()]


async def get_owned(session: AsyncSession, collection_id: str, user_id: str) -> Optional[Collection]:
    stmt = select(Collection).where(
        Collection.id == collection_id,
        Collection.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def add_video(session: AsyncSession, collection: Collection, video: Video) -> bool:
    """
    Add a video to a collection.

    Returns:
        False if the video was already in the collection
    """
    if any(existing.id == video.id for existing in collection.videos):
        return False
    collection.videos.append(video)
    collection.updated_at = utcnow()
    await session.flush()
    return True
