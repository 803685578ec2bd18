"""
Creator dashboard: totals, month-over-month growth, top videos, a 30-day
revenue chart and audience analytics, all derived from Purchase, Like and
Follow rows rather than from denormalized counters.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import AuthorizationException, CreatorNotFoundException
from marketplace.database.base import utcnow
from marketplace.database.models.enums import UserType
from marketplace.database.models.user import User
from marketplace.database.models.video import Video
from marketplace.models.schemas import (
    CategoryPerformance,
    DashboardAnalytics,
    DashboardData,
    DashboardStats,
    DashboardVideo,
    RevenuePoint,
)
from marketplace.repositories import (
    creator_db_repository,
    follow_db_repository,
    like_db_repository,
    stats_db_repository,
    video_db_repository,
)

logger = logging.getLogger(__name__)

CHART_DAYS = 30
VIDEO_LIST_SIZE = 5


def month_start(moment: datetime, months_back: int = 0) -> datetime:
    year, month = moment.year, moment.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1)


def growth(current: float, previous: float) -> float:
    """Percentage change; 100 when growing from nothing."""
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    return 100.0 if current > 0 else 0.0


def revenue_chart(sales: list[tuple[datetime, float]], today: datetime, days: int = CHART_DAYS) -> list[RevenuePoint]:
    """Daily revenue and sale counts for the last `days` days, oldest first, gaps filled."""
    revenue = defaultdict(float)
    counts = defaultdict(int)
    for sold_at, amount in sales:
        key = sold_at.date().isoformat()
        revenue[key] += amount
        counts[key] += 1

    points = []
    for offset in range(days - 1, -1, -1):
        key = (today - timedelta(days=offset)).date().isoformat()
        points.append(RevenuePoint(date=key, revenue=round(revenue[key], 2), sales=counts[key]))
    return points


def repeat_customer_rate(purchases_per_buyer: list[int]) -> float:
    if not purchases_per_buyer:
        return 0.0
    repeat = sum(1 for count in purchases_per_buyer if count > 1)
    return round(repeat / len(purchases_per_buyer) * 100, 2)


async def _dashboard_videos(session: AsyncSession, creator_id: str, order_by) -> list[DashboardVideo]:
    videos, _ = await video_db_repository.list_videos(
        session,
        conditions=[Video.creator_id == creator_id],
        order_by=[order_by],
        limit=VIDEO_LIST_SIZE,
    )
    likes = await like_db_repository.counts_for_videos(session, [v.id for v in videos])
    return [
        DashboardVideo(
            id=v.id,
            title=v.title,
            thumbnail_url=v.thumbnail_url or "",
            views=v.views,
            likes=likes.get(v.id, 0),
            revenue=v.revenue,
            created_at=v.created_at,
        )
        for v in videos
    ]


async def get_dashboard(session: AsyncSession, user: User, now: Optional[datetime] = None) -> DashboardData:
    """
    Build the dashboard for a creator.

    Raises:
        AuthorizationException: The user is not a creator
        CreatorNotFoundException: The creator has no profile yet
    """
    if user.user_type != UserType.CREATOR.value:
        raise AuthorizationException("Only creators can access dashboard")

    creator = await creator_db_repository.get_by_user_id(session, user.id)
    if creator is None:
        raise CreatorNotFoundException(user.id, "Creator profile not found")

    now = now or utcnow()
    this_month = month_start(now)
    last_month = month_start(now, 1)

    total_revenue, total_sales = await stats_db_repository.creator_sales(session, user.id)
    total_videos, total_views, _ = await stats_db_repository.creator_video_totals(session, user.id)
    total_likes = await like_db_repository.count_for_creator(session, user.id)
    followers = await follow_db_repository.count_followers(session, user.id)

    revenue_this_month, _ = await stats_db_repository.creator_sales(session, user.id, start=this_month)
    revenue_last_month, _ = await stats_db_repository.creator_sales(
        session, user.id, start=last_month, end=this_month
    )
    _, views_this_month, _ = await stats_db_repository.creator_video_totals(
        session, user.id, created_from=this_month
    )
    _, views_last_month, _ = await stats_db_repository.creator_video_totals(
        session, user.id, created_from=last_month, created_to=this_month
    )

    chart_start = (now - timedelta(days=CHART_DAYS - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    sales = await stats_db_repository.creator_sales_since(session, user.id, chart_start)

    categories = await stats_db_repository.category_breakdown(
        session, conditions=[Video.creator_id == user.id], limit=5
    )
    buyers = await stats_db_repository.creator_buyer_counts(session, user.id)

    return DashboardData(
        stats=DashboardStats(
            total_revenue=round(total_revenue, 2),
            total_views=total_views,
            total_likes=total_likes,
            total_videos=total_videos,
            total_sales=total_sales,
            followers=followers,
            revenue_growth=growth(revenue_this_month, revenue_last_month),
            views_growth=growth(views_this_month, views_last_month),
        ),
        recent_videos=await _dashboard_videos(session, user.id, Video.created_at.desc()),
        top_performers=await _dashboard_videos(session, user.id, Video.views.desc()),
        revenue_chart=revenue_chart(sales, now),
        analytics=DashboardAnalytics(
            top_categories=[
                CategoryPerformance(category=c["category"], count=c["count"], revenue=round(c["revenue"], 2))
                for c in categories
            ],
            conversion_rate=round(total_sales / total_views * 100, 2) if total_views else 0.0,
            repeat_customers=repeat_customer_rate(buyers),
        ),
    )
