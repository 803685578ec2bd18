"""
Library endpoints: purchases, likes and collections of the signed-in user.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user
from marketplace.database.dependencies import get_db
from marketplace.database.models.user import User
from marketplace.models.schemas import (
    AddToCollectionRequest,
    AddToCollectionResponse,
    CollectionCreatedResponse,
    CollectionListResponse,
    CreateCollectionRequest,
    LikeListResponse,
    PurchaseListResponse,
    ToggleLikeRequest,
    ToggleLikeResponse,
)
from marketplace.services import library_service

router = APIRouter()


@router.get("/library/purchases", response_model=PurchaseListResponse)
async def list_purchases(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    return await library_service.list_purchases(session, user)


@router.get("/library/likes", response_model=LikeListResponse)
async def list_likes(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    return await library_service.list_likes(session, user)


@router.post("/library/likes", response_model=ToggleLikeResponse)
async def toggle_like(
    request: ToggleLikeRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Like a video, or remove an existing like."""
    return await library_service.toggle_like(session, user, request.video_id)


@router.get("/library/collections", response_model=CollectionListResponse)
async def list_collections(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    return await library_service.list_collections(session, user)


@router.post("/library/collections", response_model=CollectionCreatedResponse)
async def create_collection(
    request: CreateCollectionRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return await library_service.create_collection(session, user, request)


@router.post("/library/collections/{collection_id}/videos", response_model=AddToCollectionResponse)
async def add_to_collection(
    collection_id: str,
    request: AddToCollectionRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return await library_service.add_to_collection(session, user, collection_id, request.video_id)
