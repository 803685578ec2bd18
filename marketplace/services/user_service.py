"""
Public profiles, profile edits, per-user video listings and follows.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import AuthorizationException, UserNotFoundException, ValidationException
from marketplace.database.models.enums import UserType
from marketplace.database.models.user import User
from marketplace.models.schemas import (
    CreatorProfile,
    FollowResponse,
    Pagination,
    ProfileStats,
    ProfileUpdatedResponse,
    UpdateProfileRequest,
    UserProfile,
    VideoListResponse,
)
from marketplace.repositories import (
    creator_db_repository,
    follow_db_repository,
    like_db_repository,
    stats_db_repository,
    user_db_repository,
    video_db_repository,
)
from marketplace.services.video_service import video_cards

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("display_name", "bio", "location", "website", "social_links")


async def _get_user(session: AsyncSession, username: str) -> User:
    if not username:
        raise ValidationException("Username required")
    user = await user_db_repository.get_by_username(session, username)
    if user is None:
        raise UserNotFoundException(username)
    return user


async def build_profile(session: AsyncSession, user: User, viewer: Optional[User]) -> UserProfile:
    """Profile with stats; unpublished videos and email are counted/shown only to the owner."""
    is_self = viewer is not None and viewer.id == user.id

    video_count, views, revenue = await stats_db_repository.creator_video_totals(
        session, user.id, public_only=not is_self
    )
    stats = ProfileStats(
        followers=await follow_db_repository.count_followers(session, user.id),
        following=await follow_db_repository.count_following(session, user.id),
        total_views=views,
        total_likes=await like_db_repository.count_for_creator(session, user.id),
        total_videos=video_count,
        total_revenue=round(revenue, 2),
    )

    creator = None
    profile = await creator_db_repository.get_by_user_id(session, user.id)
    if profile is not None:
        earnings, sales = await stats_db_repository.creator_sales(session, user.id)
        creator = CreatorProfile(
            id=profile.id,
            is_verified=profile.is_verified,
            total_earnings=round(earnings, 2),
            total_sales=sales,
            specialties=list(profile.specialties or []),
        )

    is_following = False
    if viewer is not None and not is_self:
        is_following = await follow_db_repository.get(session, viewer.id, user.id) is not None

    return UserProfile(
        id=user.id,
        username=user.username,
        display_name=user.display_name or user.name or "",
        email=user.email if is_self else None,
        avatar=user.image,
        bio=user.bio,
        location=user.location,
        website=user.website,
        social_links=user.social_links,
        is_verified=user.is_verified,
        user_type=user.user_type,
        subscription_tier=user.subscription_tier,
        joined_at=user.created_at,
        is_following=is_following,
        stats=stats,
        creator=creator,
    )


async def get_profile(session: AsyncSession, username: str, viewer: Optional[User]) -> UserProfile:
    user = await _get_user(session, username)
    return await build_profile(session, user, viewer)


async def update_profile(
    session: AsyncSession,
    username: str,
    current_user: User,
    request: UpdateProfileRequest,
) -> ProfileUpdatedResponse:
    """
    Apply a partial profile edit. Creators may also replace their specialties.

    Raises:
        AuthorizationException: Editing someone else's profile
    """
    if current_user.username != username:
        raise AuthorizationException("Forbidden - can only edit own profile")

    changes = request.model_dump(include=set(_EDITABLE_FIELDS), exclude_unset=True)
    user = await user_db_repository.update(session, current_user.id, **changes)
    if user is None:
        raise UserNotFoundException(username)

    if request.specialties is not None and user.user_type == UserType.CREATOR.value:
        specialties = [s.strip() for s in request.specialties if s and s.strip()]
        await creator_db_repository.set_specialties(session, user.id, specialties)

    logger.info(f"Updated profile for {username}: {sorted(changes)}")
    return ProfileUpdatedResponse(
        message="Profile updated successfully",
        user=await build_profile(session, user, current_user),
    )


async def list_user_videos(
    session: AsyncSession,
    username: str,
    viewer: Optional[User],
    page: int = 1,
    limit: int = 20,
) -> VideoListResponse:
    user = await _get_user(session, username)
    include_unpublished = viewer is not None and viewer.id == user.id
    videos, total = await video_db_repository.list_by_creator(
        session,
        user.id,
        include_unpublished=include_unpublished,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return VideoListResponse(
        videos=await video_cards(session, videos),
        pagination=Pagination.build(page, limit, total),
    )


async def toggle_follow(session: AsyncSession, username: str, current_user: User) -> FollowResponse:
    target = await _get_user(session, username)
    if target.id == current_user.id:
        raise ValidationException("Cannot follow yourself")

    following = await follow_db_repository.toggle(session, current_user.id, target.id)
    return FollowResponse(
        message=f"{'Followed' if following else 'Unfollowed'} {target.username}",
        following=following,
        followers=await follow_db_repository.count_followers(session, target.id),
    )
