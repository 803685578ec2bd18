"""
Search endpoints for videos, creators and typeahead suggestions.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.dependencies import get_db
from marketplace.models.schemas import CreatorSearchResponse, SuggestionsResponse, VideoSearchResponse
from marketplace.services import search_service

router = APIRouter()


@router.get("/search/videos", response_model=VideoSearchResponse)
async def search_videos(
    query: str = "",
    category: Optional[str] = None,
    style: Optional[str] = None,
    price_range: Optional[str] = Query(None, alias="priceRange"),
    duration: Optional[str] = None,
    sort_by: str = Query("trending", alias="sortBy"),
    date_range: Optional[str] = Query(None, alias="dateRange"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
):
    return await search_service.search_videos(
        session,
        query=query,
        category=category,
        style=style,
        price_range=price_range,
        duration=duration,
        sort_by=sort_by,
        date_range=date_range,
        page=page,
        limit=limit,
    )


@router.get("/search/creators", response_model=CreatorSearchResponse)
async def search_creators(
    q: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
):
    return await search_service.search_creators(session, query=q, page=page, limit=limit)


@router.get("/search/suggestions", response_model=SuggestionsResponse, response_model_exclude_none=True)
async def search_suggestions(
    q: str = "",
    limit: int = Query(8, ge=1, le=50),
    session: AsyncSession = Depends(get_db),
):
    """Popular tags for short queries, otherwise mixed matches."""
    return await search_service.suggestions(session, query=q, limit=limit)
