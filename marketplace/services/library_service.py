"""
A signed-in user's library: purchases, likes and collections.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import CollectionNotFoundException, ValidationException, VideoNotFoundException
from marketplace.database.models.collection import Collection
from marketplace.database.models.user import User
from marketplace.database.models.video import Video
from marketplace.models.schemas import (
    AddToCollectionResponse,
    CollectionCreatedResponse,
    CollectionItem,
    CollectionListResponse,
    CreateCollectionRequest,
    LikeItem,
    LikeListResponse,
    PurchaseItem,
    PurchaseListResponse,
    ToggleLikeResponse,
)
from marketplace.repositories import (
    collection_db_repository,
    like_db_repository,
    purchase_db_repository,
    video_db_repository,
)
from marketplace.services.video_service import video_card

logger = logging.getLogger(__name__)


def _visible_to(video: Video, user: User) -> bool:
    return video.creator_id == user.id or (video.is_public and video.status == "PUBLISHED")


def collection_item(collection: Collection, video_count: int) -> CollectionItem:
    return CollectionItem(
        id=collection.id,
        name=collection.name,
        description=collection.description,
        is_public=collection.is_public,
        video_count=video_count,
        created_at=collection.created_at,
        updated_at=collection.updated_at,
    )


async def list_purchases(session: AsyncSession, user: User) -> PurchaseListResponse:
    purchases = await purchase_db_repository.list_by_user(session, user.id)
    likes = await like_db_repository.counts_for_videos(session, {p.video_id for p in purchases})
    return PurchaseListResponse(purchases=[
        PurchaseItem(
            id=p.id,
            video_id=p.video_id,
            license_type=p.license_type,
            amount=p.amount,
            currency=p.currency,
            status=p.status,
            created_at=p.created_at,
            video=video_card(p.video, likes.get(p.video_id, 0)),
        )
        for p in purchases
    ])


async def list_likes(session: AsyncSession, user: User) -> LikeListResponse:
    liked = await like_db_repository.list_by_user(session, user.id)
    counts = await like_db_repository.counts_for_videos(session, {like.video_id for like in liked})
    return LikeListResponse(likes=[
        LikeItem(
            id=like.id,
            video_id=like.video_id,
            created_at=like.created_at,
            video=video_card(like.video, counts.get(like.video_id, 0)),
        )
        for like in liked
    ])


async def toggle_like(session: AsyncSession, user: User, video_id: Optional[str]) -> ToggleLikeResponse:
    if not video_id:
        raise ValidationException("Video ID required")

    video = await video_db_repository.get_by_id(session, video_id)
    if video is None or not _visible_to(video, user):
        raise VideoNotFoundException(video_id)

    liked = await like_db_repository.toggle(session, user.id, video_id)
    return ToggleLikeResponse(
        message="Video liked" if liked else "Video unliked",
        liked=liked,
        like_count=await like_db_repository.count_for_video(session, video_id),
    )


async def list_collections(session: AsyncSession, user: User) -> CollectionListResponse:
    rows = await collection_db_repository.list_by_user_with_counts(session, user.id)
    return CollectionListResponse(collections=[collection_item(c, count) for c, count in rows])


async def create_collection(session: AsyncSession, user: User, request: CreateCollectionRequest) -> CollectionCreatedResponse:
    if not request.name or not request.name.strip():
        raise ValidationException("Collection name is required")

    collection = await collection_db_repository.create(
        session,
        user_id=user.id,
        name=request.name.strip(),
        description=(request.description or "").strip(),
        is_public=request.is_public,
    )
    logger.info(f"Created collection {collection.id} for user {user.id}")
    return CollectionCreatedResponse(
        message="Collection created successfully",
        collection=collection_item(collection, 0),
    )


async def add_to_collection(
    session: AsyncSession,
    user: User,
    collection_id: str,
    video_id: Optional[str],
) -> AddToCollectionResponse:
    if not video_id:
        raise ValidationException("Video ID required")

    collection = await collection_db_repository.get_owned(session, collection_id, user.id)
    if collection is None:
        raise CollectionNotFoundException(collection_id)

    video = await video_db_repository.get_by_id(session, video_id)
    if video is None or not _visible_to(video, user):
        raise VideoNotFoundException(video_id)

    added = await collection_db_repository.add_video(session, collection, video)
    return AddToCollectionResponse(
        message="Video added to collection" if added else "Video already in collection",
        added=added,
        collection=collection_item(collection, len(collection.videos)),
    )
