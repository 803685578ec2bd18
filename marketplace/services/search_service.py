"""
Search over videos and creators, plus typeahead suggestions.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import String, cast
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.base import LIKE_ESCAPE, contains_pattern, utcnow
from marketplace.database.models.enums import VideoCategory, VideoStyle
from marketplace.database.models.user import User
from marketplace.database.models.video import Video
from marketplace.models.schemas import (
    CreatorCard,
    CreatorSearchResponse,
    Pagination,
    Suggestion,
    SuggestionsResponse,
    VideoSearchResponse,
)
from marketplace.repositories import stats_db_repository, video_db_repository
from marketplace.services.video_service import text_match, video_cards

logger = logging.getLogger(__name__)

PRICE_RANGES = {
    "free": lambda: [(Video.is_available_for_sale.is_(False)) | (Video.personal_license.is_(None))],
    "under_10": lambda: [Video.is_available_for_sale.is_(True), Video.personal_license < 10],
    "10_50": lambda: [Video.is_available_for_sale.is_(True), Video.personal_license.between(10, 50)],
    "50_100": lambda: [Video.is_available_for_sale.is_(True), Video.personal_license.between(50, 100)],
    "over_100": lambda: [Video.is_available_for_sale.is_(True), Video.personal_license > 100],
}

DURATIONS = {
    "short": lambda: [Video.duration < 30],
    "medium": lambda: [Video.duration.between(30, 120)],
    "long": lambda: [Video.duration > 120],
}

SEARCH_SORTS = {
    "newest": lambda: [Video.created_at.desc()],
    "popular": lambda: [Video.views.desc(), video_db_repository.like_count_column().desc()],
    "views": lambda: [Video.views.desc()],
    "likes": lambda: [video_db_repository.like_count_column().desc()],
    "price_low": lambda: [Video.personal_license.asc()],
    "price_high": lambda: [Video.personal_license.desc()],
    "trending": lambda: [Video.is_featured.desc(), Video.views.desc(), Video.created_at.desc()],
}


def date_range_start(date_range: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Lower bound on created_at for a named date range, or None for all time."""
    now = now or utcnow()
    if date_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if date_range == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def _enum_value(raw: Optional[str], placeholder: str) -> Optional[str]:
    """Normalize 'Motion Graphics' style labels to stored enum values."""
    if not raw or raw == placeholder:
        return None
    return raw.strip().upper().replace(" ", "_")


def _label(value: str) -> str:
    return value.replace("_", " ").title()


async def search_videos(
    session: AsyncSession,
    query: str = "",
    category: Optional[str] = None,
    style: Optional[str] = None,
    price_range: Optional[str] = None,
    duration: Optional[str] = None,
    sort_by: str = "trending",
    date_range: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> VideoSearchResponse:
    conditions = video_db_repository.publicly_visible()

    if query:
        pattern = contains_pattern(query)
        conditions.append(
            text_match(query)
            | Video.creator.has(
                User.username.ilike(pattern, escape=LIKE_ESCAPE)
                | User.name.ilike(pattern, escape=LIKE_ESCAPE)
            )
        )

    category_value = _enum_value(category, "All Categories")
    if category_value:
        conditions.append(Video.category == category_value)

    style_value = _enum_value(style, "All Styles")
    if style_value:
        conditions.append(Video.style == style_value)

    if price_range in PRICE_RANGES:
        conditions.extend(PRICE_RANGES[price_range]())
    if duration in DURATIONS:
        conditions.extend(DURATIONS[duration]())

    since = date_range_start(date_range)
    if since is not None:
        conditions.append(Video.created_at >= since)

    order_by = SEARCH_SORTS.get(sort_by, SEARCH_SORTS["trending"])()
    videos, total = await video_db_repository.list_videos(
        session,
        conditions=conditions,
        order_by=order_by,
        limit=limit,
        offset=(page - 1) * limit,
    )

    return VideoSearchResponse(
        videos=await video_cards(session, videos),
        pagination=Pagination.build(page, limit, total),
        filters={
            "query": query,
            "category": category,
            "style": style,
            "priceRange": price_range,
            "duration": duration,
            "sortBy": sort_by,
            "dateRange": date_range,
        },
    )


async def search_creators(session: AsyncSession, query: str = "", page: int = 1, limit: int = 20) -> CreatorSearchResponse:
    """Creators matching a query; an empty query returns no results."""
    if not query:
        return CreatorSearchResponse(creators=[], pagination=Pagination.build(1, limit, 0), query=query)

    rows, total = await stats_db_repository.ranked_creators(
        session, query=query, limit=limit, offset=(page - 1) * limit
    )
    stats = await stats_db_repository.video_stats_by_creator(session, [user.id for _, user, _ in rows])

    creators = []
    for creator, user, followers in rows:
        video_count, views = stats.get(user.id, (0, 0))
        creators.append(CreatorCard(
            id=user.id,
            username=user.username,
            display_name=user.display_name or user.name or user.username,
            avatar=user.image,
            is_verified=user.is_verified,
            followers=followers,
            total_videos=video_count,
            total_views=views,
            specialties=list(creator.specialties or []),
        ))

    return CreatorSearchResponse(
        creators=creators,
        pagination=Pagination.build(page, limit, total),
        query=query,
    )


async def popular_tags(session: AsyncSession, limit: int) -> list[Suggestion]:
    """Most frequent tags among the most viewed public videos."""
    counts = Counter(tag for tags in await video_db_repository.top_tags(session) for tag in tags)
    return [
        Suggestion(type="tag", value=tag, label=f"#{tag}", count=count)
        for tag, count in counts.most_common(limit)
    ]


async def suggestions(session: AsyncSession, query: str = "", limit: int = 8) -> SuggestionsResponse:
    if len(query) < 2:
        return SuggestionsResponse(suggestions=await popular_tags(session, limit), type="popular")

    results: list[Suggestion] = []
    pattern = contains_pattern(query)
    lowered = query.lower()

    videos, _ = await video_db_repository.list_videos(
        session,
        conditions=[*video_db_repository.publicly_visible(), Video.title.ilike(pattern, escape=LIKE_ESCAPE)],
        order_by=[Video.views.desc()],
        limit=3,
    )
    for video in videos:
        results.append(Suggestion(
            type="video",
            value=video.title,
            label=video.title,
            id=video.id,
            thumbnail=video.thumbnail_url,
            views=video.views,
            verified=video.creator.is_verified if video.creator else False,
        ))

    creators, _ = await stats_db_repository.ranked_creators(session, query=query, limit=3)
    for _, user, followers in creators:
        results.append(Suggestion(
            type="creator",
            value=user.name or user.username,
            label=f"@{user.username}",
            username=user.username,
            avatar=user.image,
            followers=followers,
            verified=user.is_verified,
        ))

    tagged, _ = await video_db_repository.list_videos(
        session,
        conditions=[
            *video_db_repository.publicly_visible(),
            cast(Video.tags, String).ilike(pattern, escape=LIKE_ESCAPE),
        ],
        order_by=[Video.views.desc()],
        limit=20,
    )
    matching_tags: list[str] = []
    for video in tagged:
        for tag in video.tags or []:
            if lowered in tag.lower() and tag not in matching_tags:
                matching_tags.append(tag)
    for tag in matching_tags[:3]:
        results.append(Suggestion(type="tag", value=tag, label=f"#{tag}", count=0))

    for kind, enum_cls in (("category", VideoCategory), ("style", VideoStyle)):
        matches = [member.value for member in enum_cls if lowered in _label(member.value).lower()]
        for value in matches[:2]:
            results.append(Suggestion(type=kind, value=value, label=_label(value)))

    return SuggestionsResponse(suggestions=results[:limit], type="search", query=query)
