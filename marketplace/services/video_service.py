"""
Video catalogue reads and owner deletes, plus the card presenters shared by
every read-side view.
"""
import logging
from typing import Optional, Sequence

from sqlalchemy import String, cast
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import AuthorizationException, VideoNotFoundException, StorageException
from marketplace.database.base import LIKE_ESCAPE, contains_pattern
from marketplace.database.models.user import User
from marketplace.database.models.video import Video
from marketplace.models.schemas import (
    CreatorSummary,
    Pricing,
    VideoCard,
    VideoDetail,
    VideoListResponse,
    Pagination,
)
from marketplace.repositories import like_db_repository, purchase_db_repository, video_db_repository
from marketplace.services.storage_service import GCSStorage

logger = logging.getLogger(__name__)

SORT_ORDERS = {
    "recent": lambda: [Video.created_at.desc()],
    "popular": lambda: [Video.views.desc()],
    "trending": lambda: [video_db_repository.like_count_column().desc(), Video.views.desc()],
}


def creator_summary(user: Optional[User]) -> Optional[CreatorSummary]:
    if user is None:
        return None
    return CreatorSummary(
        id=user.id,
        username=user.username,
        display_name=user.display_name or user.name or user.username,
        avatar=user.image,
        is_verified=user.is_verified,
        user_type=user.user_type,
    )


def pricing_of(video: Video) -> Pricing:
    return Pricing(
        personal_license=video.personal_license,
        commercial_license=video.commercial_license,
        extended_license=video.extended_license,
        exclusive_rights=video.exclusive_rights,
        is_available_for_sale=video.is_available_for_sale,
    )


def video_card(video: Video, likes: int = 0) -> VideoCard:
    """Listing representation; expects video.creator to be loaded."""
    return VideoCard(
        id=video.id,
        title=video.title,
        description=video.description or "",
        thumbnail_url=video.thumbnail_url or "",
        duration=video.duration,
        views=video.views,
        likes=likes,
        purchases=video.purchases,
        category=video.category,
        style=video.style,
        tags=list(video.tags or []),
        is_featured=video.is_featured,
        is_public=video.is_public,
        status=video.status,
        pricing=pricing_of(video),
        creator=creator_summary(video.creator),
        created_at=video.created_at,
    )


def video_detail(
    video: Video,
    likes: int = 0,
    liked_by_me: bool = False,
    owned_licenses: Sequence[str] = (),
) -> VideoDetail:
    card = video_card(video, likes)
    return VideoDetail(
        **card.model_dump(),
        video_url=video.video_url,
        file_size=video.file_size,
        resolution=video.resolution,
        aspect_ratio=video.aspect_ratio,
        fps=video.fps,
        ai_model=video.ai_model,
        prompts=list(video.prompts or []),
        revenue=video.revenue,
        liked_by_me=liked_by_me,
        owned_licenses=list(owned_licenses),
    )


async def video_cards(session: AsyncSession, videos: Sequence[Video]) -> list[VideoCard]:
    """Cards for a batch of videos with like counts fetched in one query."""
    counts = await like_db_repository.counts_for_videos(session, [v.id for v in videos])
    return [video_card(v, counts.get(v.id, 0)) for v in videos]


async def list_videos(
    session: AsyncSession,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    style: Optional[str] = None,
    creator_id: Optional[str] = None,
    featured: bool = False,
    search: Optional[str] = None,
    sort_by: str = "recent",
) -> VideoListResponse:
    """Public catalogue page."""
    conditions = video_db_repository.publicly_visible()
    if category:
        conditions.append(Video.category == category.upper())
    if style:
        conditions.append(Video.style == style.upper())
    if creator_id:
        conditions.append(Video.creator_id == creator_id)
    if featured:
        conditions.append(Video.is_featured.is_(True))
    if search:
        conditions.append(text_match(search))

    order_by = SORT_ORDERS.get(sort_by, SORT_ORDERS["recent"])()
    videos, total = await video_db_repository.list_videos(
        session,
        conditions=conditions,
        order_by=order_by,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return VideoListResponse(
        videos=await video_cards(session, videos),
        pagination=Pagination.build(page, limit, total),
    )


def text_match(query: str):
    """Case-insensitive match on title, description or tags."""
    pattern = contains_pattern(query)
    return (
        Video.title.ilike(pattern, escape=LIKE_ESCAPE)
        | Video.description.ilike(pattern, escape=LIKE_ESCAPE)
        | cast(Video.tags, String).ilike(pattern, escape=LIKE_ESCAPE)
    )


async def get_video(session: AsyncSession, video_id: str, viewer: Optional[User]) -> VideoDetail:
    """
    Video detail page. Unpublished or private videos are visible only to their
    creator; signed-in viewers other than the creator add a view.
    """
    video = await video_db_repository.get_with_creator(session, video_id)
    if video is None:
        raise VideoNotFoundException(video_id)

    is_owner = viewer is not None and viewer.id == video.creator_id
    if not is_owner and not (video.is_public and video.status == "PUBLISHED"):
        raise VideoNotFoundException(video_id)

    liked = False
    owned: list[str] = []
    if viewer is not None:
        if not is_owner:
            await video_db_repository.increment_views(session, video.id)
            await session.refresh(video, attribute_names=["views"])
        liked = await like_db_repository.get(session, viewer.id, video.id) is not None
        owned = await purchase_db_repository.owned_license_types(session, viewer.id, video.id)

    likes = await like_db_repository.count_for_video(session, video.id)
    return video_detail(video, likes=likes, liked_by_me=liked, owned_licenses=owned)


async def delete_video(session: AsyncSession, storage: GCSStorage, video_id: str, user: User) -> None:
    """Delete an owned video and, best-effort, its stored objects."""
    video = await video_db_repository.get_by_id(session, video_id)
    if video is None:
        raise VideoNotFoundException(video_id)
    if video.creator_id != user.id:
        raise AuthorizationException("Unauthorized")

    keys = [key for key in (video.storage_key, video.thumbnail_key) if key]
    await video_db_repository.delete_by_id(session, video_id)
    logger.info(f"Deleted video {video_id} for user {user.id}")

    for key in keys:
        try:
            await storage.delete(key)
        except StorageException as e:
            logger.warning(f"Could not delete stored object {key} for video {video_id}: {e.error}")
