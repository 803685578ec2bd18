"""
Aggregate queries behind the dashboard, trending, category and creator search views.
"""
from datetime import datetime
from typing import Optional, Sequence
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.base import LIKE_ESCAPE, contains_pattern
from marketplace.database.models.creator import Creator
from marketplace.database.models.purchase import Purchase
from marketplace.database.models.user import User
from marketplace.database.models.video import Video
from marketplace.database.models.engagement import Like
from marketplace.database.models.enums import PurchaseStatus
from marketplace.repositories.follow_db_repository import follower_count_column
from marketplace.repositories.video_db_repository import publicly_visible


# Rows completed before completed_at existed fall back to their creation time
_sold_at = func.coalesce(Purchase.completed_at, Purchase.created_at)


def _completed_sales_of(creator_id: str) -> list:
    return [
        Video.creator_id == creator_id,
        Purchase.status == PurchaseStatus.COMPLETED.value,
    ]


async def creator_sales(
    session: AsyncSession,
    creator_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> tuple[float, int]:
    """
    Completed purchase revenue and count for a creator's videos.

    Returns:
        (gross revenue, number of sales) within [start, end) when given
    """
    conditions = _completed_sales_of(creator_id)
    if start is not None:
        conditions.append(_sold_at >= start)
    if end is not None:
        conditions.append(_sold_at < end)

    stmt = (
        select(func.coalesce(func.sum(Purchase.amount), 0.0), func.count(Purchase.id))
        .join(Video, Video.id == Purchase.video_id)
        .where(*conditions)
    )
    revenue, count = (await session.execute(stmt)).one()
    return float(revenue or 0.0), int(count or 0)


async def creator_sales_since(session: AsyncSession, creator_id: str, since: datetime) -> list[tuple[datetime, float]]:
    """(completion time, amount) of every completed sale since a point in time."""
    stmt = (
        select(_sold_at, Purchase.amount)
        .join(Video, Video.id == Purchase.video_id)
        .where(*_completed_sales_of(creator_id), _sold_at >= since)
        .order_by(_sold_at)
    )
    result = await session.execute(stmt)
    return [(sold, float(amount)) for sold, amount in result.all()]


async def creator_buyer_counts(session: AsyncSession, creator_id: str) -> list[int]:
    """Number of completed purchases per distinct buyer of a creator's videos."""
    stmt = (
        select(func.count(Purchase.id))
        .join(Video, Video.id == Purchase.video_id)
        .where(*_completed_sales_of(creator_id))
        .group_by(Purchase.user_id)
    )
    result = await session.execute(stmt)
    return [int(count) for count in result.scalars().all()]


async def creator_video_totals(
    session: AsyncSession,
    creator_id: str,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    public_only: bool = False,
) -> tuple[int, int, float]:
    """
    Video count, summed views and summed revenue counters for a creator.
    """
    conditions = [Video.creator_id == creator_id]
    if public_only:
        conditions.extend(publicly_visible())
    if created_from is not None:
        conditions.append(Video.created_at >= created_from)
    if created_to is not None:
        conditions.append(Video.created_at < created_to)

    stmt = select(
        func.count(Video.id),
        func.coalesce(func.sum(Video.views), 0),
        func.coalesce(func.sum(Video.revenue), 0.0),
    ).where(*conditions)
    count, views, revenue = (await session.execute(stmt)).one()
    return int(count or 0), int(views or 0), float(revenue or 0.0)


async def video_stats_by_creator(session: AsyncSession, creator_ids: Sequence[str]) -> dict[str, tuple[int, int]]:
    """Public video count and summed views keyed by creator user id."""
    if not creator_ids:
        return {}
    stmt = (
        select(Video.creator_id, func.count(Video.id), func.coalesce(func.sum(Video.views), 0))
        .where(Video.creator_id.in_(list(creator_ids)), *publicly_visible())
        .group_by(Video.creator_id)
    )
    result = await session.execute(stmt)
    return {creator_id: (int(count), int(views)) for creator_id, count, views in result.all()}


async def category_breakdown(
    session: AsyncSession,
    conditions: Sequence,
    limit: Optional[int] = None,
) -> list[dict]:
    """
    Per-category video count, views, revenue and likes, most videos first.
    """
    likes = (
        select(Like.video_id, func.count(Like.id).label("like_count"))
        .group_by(Like.video_id)
        .subquery()
    )
    count_col = func.count(Video.id)
    stmt = (
        select(
            Video.category,
            count_col,
            func.coalesce(func.sum(Video.views), 0),
            func.coalesce(func.sum(Video.revenue), 0.0),
            func.coalesce(func.sum(likes.c.like_count), 0),
        )
        .outerjoin(likes, likes.c.video_id == Video.id)
        .where(*conditions)
        .group_by(Video.category)
        .order_by(desc(count_col), Video.category)
    )
    if limit is not None:
        stmt = stmt.limit(limit)

    result = await session.execute(stmt)
    return [
        {
            "category": category,
            "count": int(count),
            "views": int(views),
            "revenue": float(revenue),
            "likes": int(like_total),
        }
        for category, count, views, revenue, like_total in result.all()
    ]


async def public_totals(session: AsyncSession) -> tuple[int, int]:
    """Number of publicly visible videos and their summed views."""
    stmt = select(func.count(Video.id), func.coalesce(func.sum(Video.views), 0)).where(*publicly_visible())
    count, views = (await session.execute(stmt)).one()
    return int(count or 0), int(views or 0)


async def count_public_since(session: AsyncSession, since: datetime, min_views: int = 0) -> int:
    stmt = select(func.count(Video.id)).where(
        *publicly_visible(),
        Video.created_at >= since,
        Video.views >= min_views,
    )
    return (await session.execute(stmt)).scalar_one()


async def count_creators(session: AsyncSession) -> int:
    return (await session.execute(select(func.count(Creator.id)))).scalar_one()


async def ranked_creators(
    session: AsyncSession,
    query: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
    followers_first: bool = False,
) -> tuple[list[tuple[Creator, User, int]], int]:
    """
    Creator profiles ranked by verification, follower count and catalogue size.

    Args:
        query: Optional case-insensitive match on name, username or bio
        followers_first: Rank by follower count ahead of verification

    Returns:
        ([(creator, user, followers)], total matching count)
    """
    followers = follower_count_column(User.id)
    conditions = []
    if query:
        pattern = contains_pattern(query)
        conditions.append(
            User.name.ilike(pattern, escape=LIKE_ESCAPE)
            | User.username.ilike(pattern, escape=LIKE_ESCAPE)
            | User.bio.ilike(pattern, escape=LIKE_ESCAPE)
        )

    if followers_first:
        ordering = [desc(followers), User.is_verified.desc()]
    else:
        ordering = [User.is_verified.desc(), desc(followers)]
    ordering += [Creator.total_videos.desc(), User.username]

    stmt = (
        select(Creator, User, followers)
        .join(User, User.id == Creator.user_id)
        .where(*conditions)
        .order_by(*ordering)
        .limit(limit)
        .offset(offset)
    )
    count_stmt = (
        select(func.count(Creator.id))
        .join(User, User.id == Creator.user_id)
        .where(*conditions)
    )

    result = await session.execute(stmt)
    rows = [(creator, user, int(count)) for creator, user, count in result.all()]
    total = (await session.execute(count_stmt)).scalar_one()
    return rows, total
