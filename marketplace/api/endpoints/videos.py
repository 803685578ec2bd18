"""
Video catalogue endpoints: listing, detail and owner delete.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user, get_optional_user, get_storage_service
from marketplace.core.exceptions import ValidationException
from marketplace.database.dependencies import get_db
from marketplace.database.models.user import User
from marketplace.models.schemas import MessageResponse, VideoDetail, VideoListResponse
from marketplace.services import video_service
from marketplace.services.storage_service import GCSStorage

router = APIRouter()


@router.get("/videos", response_model=VideoListResponse)
async def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    style: Optional[str] = None,
    creator_id: Optional[str] = Query(None, alias="creatorId"),
    featured: bool = False,
    search: Optional[str] = None,
    sort_by: str = Query("recent", alias="sortBy"),
    session: AsyncSession = Depends(get_db),
):
    """List published public videos."""
    return await video_service.list_videos(
        session,
        page=page,
        limit=limit,
        category=category,
        style=style,
        creator_id=creator_id,
        featured=featured,
        search=search,
        sort_by=sort_by,
    )


@router.delete("/videos", response_model=MessageResponse)
async def delete_video(
    id: Optional[str] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    storage: GCSStorage = Depends(get_storage_service),
):
    """Delete one of the caller's videos."""
    if not id:
        raise ValidationException("Video ID required")
    await video_service.delete_video(session, storage, id, user)
    return MessageResponse(message="Video deleted successfully")


@router.get("/videos/{video_id}", response_model=VideoDetail)
async def get_video(
    video_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db),
):
    return await video_service.get_video(session, video_id, viewer)
