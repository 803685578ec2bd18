"""
Trending feed and category statistics endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.dependencies import get_db
from marketplace.models.schemas import CategoryStatsResponse, FeaturedCategoriesResponse, TrendingResponse
from marketplace.services import trending_service

router = APIRouter()


@router.get("/trending", response_model=TrendingResponse)
async def get_trending(session: AsyncSession = Depends(get_db)):
    return await trending_service.get_trending(session)


@router.get("/categories/stats", response_model=CategoryStatsResponse)
async def get_category_stats(session: AsyncSession = Depends(get_db)):
    return await trending_service.get_category_stats(session)


@router.get("/categories/featured", response_model=FeaturedCategoriesResponse)
async def get_featured_categories(session: AsyncSession = Depends(get_db)):
    return await trending_service.get_featured_categories(session)
