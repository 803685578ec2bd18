"""
Trending feed and category statistics.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.base import utcnow
from marketplace.database.models.enums import VideoCategory
from marketplace.database.models.video import Video
from marketplace.models.schemas import (
    CategoryStatsResponse,
    CategorySummary,
    CreatorCard,
    FeaturedCategoriesResponse,
    PlatformStats,
    TrendingResponse,
    TrendingSummary,
)
from marketplace.repositories import stats_db_repository, video_db_repository
from marketplace.services.video_service import video_cards

logger = logging.getLogger(__name__)

HOT_VIDEO_MIN_VIEWS = 100
TRENDING_CATEGORY_MIN_VIDEOS = 5
FEATURED_MIN_VIEWS = 1000


def _summary(row: dict) -> CategorySummary:
    return CategorySummary(
        category=row["category"],
        count=row["count"],
        views=row["views"],
        revenue=round(row["revenue"], 2),
        likes=row["likes"],
    )


async def get_trending(session: AsyncSession, now: Optional[datetime] = None) -> TrendingResponse:
    now = now or utcnow()
    last_day = now - timedelta(hours=24)
    last_week = now - timedelta(days=7)
    last_month = now - timedelta(days=30)
    public = video_db_repository.publicly_visible

    hot_videos = await stats_db_repository.count_public_since(session, last_day, min_views=HOT_VIDEO_MIN_VIEWS)
    week_categories = await stats_db_repository.category_breakdown(
        session, conditions=[*public(), Video.created_at >= last_week], limit=1
    )

    creators, _ = await stats_db_repository.ranked_creators(session, limit=6, followers_first=True)
    rising = creators[0] if creators else None

    trending_videos, _ = await video_db_repository.list_videos(
        session,
        conditions=[*public(), Video.created_at >= last_week],
        order_by=[Video.views.desc(), Video.created_at.desc()],
        limit=10,
    )
    featured_videos, _ = await video_db_repository.list_videos(
        session,
        conditions=[*public(), Video.is_featured.is_(True)],
        order_by=[Video.created_at.desc()],
        limit=8,
    )
    stats = await stats_db_repository.video_stats_by_creator(session, [user.id for _, user, _ in creators])
    categories = await stats_db_repository.category_breakdown(
        session, conditions=[*public(), Video.created_at >= last_month], limit=8
    )
    total_videos, total_views = await stats_db_repository.public_totals(session)

    return TrendingResponse(
        trending=TrendingSummary(
            hot_videos=hot_videos,
            top_category=week_categories[0]["category"] if week_categories else None,
            rising_creator=rising[1].username if rising else None,
            rising_creator_followers=rising[2] if rising else 0,
        ),
        trending_videos=await video_cards(session, trending_videos),
        featured_videos=await video_cards(session, featured_videos),
        trending_creators=[
            CreatorCard(
                id=user.id,
                username=user.username,
                display_name=user.display_name or user.name or user.username,
                avatar=user.image,
                is_verified=user.is_verified,
                followers=followers,
                total_videos=stats.get(user.id, (0, 0))[0],
                total_views=stats.get(user.id, (0, 0))[1],
                specialties=list(creator.specialties or []),
            )
            for creator, user, followers in creators
        ],
        categories=[_summary(row) for row in categories],
        stats=PlatformStats(
            total_videos=total_videos,
            total_creators=await stats_db_repository.count_creators(session),
            total_views=total_views,
        ),
    )


async def get_category_stats(session: AsyncSession, now: Optional[datetime] = None) -> CategoryStatsResponse:
    """
    Per-category totals, categories trending this week, and 30-day growth
    (recent uploads as a percentage of the older catalogue).
    """
    now = now or utcnow()
    public = video_db_repository.publicly_visible

    all_time = await stats_db_repository.category_breakdown(session, conditions=public())
    categories = {row["category"]: _summary(row) for row in all_time}

    this_week = await stats_db_repository.category_breakdown(
        session, conditions=[*public(), Video.created_at >= now - timedelta(days=7)]
    )
    trending = [
        row["category"]
        for row in sorted(this_week, key=lambda r: r["views"], reverse=True)
        if row["count"] >= TRENDING_CATEGORY_MIN_VIDEOS
    ]

    this_month = await stats_db_repository.category_breakdown(
        session, conditions=[*public(), Video.created_at >= now - timedelta(days=30)]
    )
    growth = {}
    for row in this_month:
        previous = categories[row["category"]].count - row["count"] if row["category"] in categories else 0
        growth[row["category"]] = round(row["count"] / previous * 100) if previous > 0 else 100

    return CategoryStatsResponse(
        categories=categories,
        trending=trending,
        growth=growth,
        total_categories=len(categories),
        total_videos=sum(c.count for c in categories.values()),
        total_views=sum(c.views for c in categories.values()),
    )


async def get_featured_categories(session: AsyncSession) -> FeaturedCategoriesResponse:
    """Up to three standout videos per category plus the overall featured shelf."""
    public = video_db_repository.publicly_visible
    categories = {}
    for category in VideoCategory:
        videos, _ = await video_db_repository.list_videos(
            session,
            conditions=[
                *public(),
                Video.category == category.value,
                Video.is_featured.is_(True) | (Video.views >= FEATURED_MIN_VIEWS),
            ],
            order_by=[Video.is_featured.desc(), Video.views.desc(), Video.created_at.desc()],
            limit=3,
        )
        categories[category.value] = await video_cards(session, videos)

    featured_videos, _ = await video_db_repository.list_videos(
        session,
        conditions=[*public(), Video.is_featured.is_(True)],
        order_by=[Video.created_at.desc()],
        limit=12,
    )
    featured = await video_cards(session, featured_videos)

    return FeaturedCategoriesResponse(
        categories=categories,
        featured=featured,
        total_featured=len(featured),
        categories_with_content=sum(1 for videos in categories.values() if videos),
    )
