"""
User profile endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user, get_optional_user
from marketplace.database.dependencies import get_db
from marketplace.database.models.user import User
from marketplace.models.schemas import (
    FollowResponse,
    ProfileUpdatedResponse,
    UpdateProfileRequest,
    UserProfileResponse,
    VideoListResponse,
)
from marketplace.services import user_service

router = APIRouter()


@router.get("/users/{username}", response_model=UserProfileResponse)
async def get_profile(
    username: str,
    viewer: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db),
):
    return UserProfileResponse(user=await user_service.get_profile(session, username, viewer))


@router.patch("/users/{username}", response_model=ProfileUpdatedResponse)
async def update_profile(
    username: str,
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return await user_service.update_profile(session, username, user, request)


@router.get("/users/{username}/videos", response_model=VideoListResponse)
async def list_user_videos(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db),
):
    """A user's videos; the owner also sees drafts and private videos."""
    return await user_service.list_user_videos(session, username, viewer, page=page, limit=limit)


@router.post("/users/{username}/follow", response_model=FollowResponse)
async def toggle_follow(
    username: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return await user_service.toggle_follow(session, username, user)
