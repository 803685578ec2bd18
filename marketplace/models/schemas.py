"""
Pydantic models for API request/response validation.
Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import Optional, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Shared building blocks

class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit if limit else 0,
            has_next=page * limit < total,
            has_prev=page > 1,
        )


class CreatorSummary(CamelModel):
    """Public identity of a video's creator."""
    id: str
    username: str
    display_name: str
    avatar: Optional[str] = None
    is_verified: bool = False
    user_type: Optional[str] = None


class Pricing(CamelModel):
    personal_license: Optional[float] = None
    commercial_license: Optional[float] = None
    extended_license: Optional[float] = None
    exclusive_rights: Optional[float] = None
    is_available_for_sale: bool = True


class VideoCard(CamelModel):
    """Video as shown in listings, search results and libraries."""
    id: str
    title: str
    description: str = ""
    thumbnail_url: str = ""
    duration: Optional[float] = None
    views: int = 0
    likes: int = 0
    purchases: int = 0
    category: str
    style: str
    tags: list[str] = Field(default_factory=list)
    is_featured: bool = False
    is_public: bool = True
    status: str
    pricing: Pricing
    creator: Optional[CreatorSummary] = None
    created_at: datetime


class VideoDetail(VideoCard):
    video_url: str
    file_size: Optional[int] = None
    resolution: Optional[str] = None
    aspect_ratio: Optional[str] = None
    fps: Optional[float] = None
    ai_model: str
    prompts: list[str] = Field(default_factory=list)
    revenue: float = 0.0
    liked_by_me: bool = False
    owned_licenses: list[str] = Field(default_factory=list)


class VideoListResponse(CamelModel):
    videos: list[VideoCard]
    pagination: Pagination


class MessageResponse(CamelModel):
    message: str


# Upload

class UploadResponse(CamelModel):
    message: str
    video: VideoDetail


# Payments

class CreatePaymentIntentRequest(CamelModel):
    """
    Purchase or tip request. Fields are optional at the schema level so the
    service can answer missing values with its own messages.
    """
    type: Optional[str] = None
    video_id: Optional[str] = None
    license_type: Optional[str] = None
    amount: Optional[float] = None
    creator_id: Optional[str] = None
    message: Optional[str] = None


class PaymentIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str


class CreateSubscriptionRequest(CamelModel):
    tier: Optional[str] = None
    billing: Optional[str] = None


class CheckoutSessionResponse(CamelModel):
    checkout_url: str
    session_id: str


class SubscriptionResponse(CamelModel):
    id: str
    tier: str
    status: str
    stripe_subscription_id: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: datetime


class CurrentSubscriptionResponse(CamelModel):
    subscription: Optional[SubscriptionResponse] = None


class WebhookAck(CamelModel):
    received: bool = True


# Library

class PurchaseItem(CamelModel):
    id: str
    video_id: str
    license_type: str
    amount: float
    currency: str
    status: str
    created_at: datetime
    video: VideoCard


class PurchaseListResponse(CamelModel):
    purchases: list[PurchaseItem]


class LikeItem(CamelModel):
    id: str
    video_id: str
    created_at: datetime
    video: VideoCard


class LikeListResponse(CamelModel):
    likes: list[LikeItem]


class ToggleLikeRequest(CamelModel):
    video_id: Optional[str] = None


class ToggleLikeResponse(CamelModel):
    message: str
    liked: bool
    like_count: int


class CollectionItem(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    is_public: bool
    video_count: int = 0
    created_at: datetime
    updated_at: datetime


class CollectionListResponse(CamelModel):
    collections: list[CollectionItem]


class CreateCollectionRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_public: bool = False


class CollectionCreatedResponse(CamelModel):
    message: str
    collection: CollectionItem


class AddToCollectionRequest(CamelModel):
    video_id: Optional[str] = None


class AddToCollectionResponse(CamelModel):
    message: str
    added: bool
    collection: CollectionItem


# Users

class ProfileStats(CamelModel):
    followers: int
    following: int
    total_views: int
    total_likes: int
    total_videos: int
    total_revenue: float


class CreatorProfile(CamelModel):
    id: str
    is_verified: bool
    total_earnings: float
    total_sales: int
    specialties: list[str] = Field(default_factory=list)


class UserProfile(CamelModel):
    id: str
    username: str
    display_name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    social_links: Optional[dict[str, Any]] = None
    is_verified: bool
    user_type: str
    subscription_tier: str
    joined_at: datetime
    is_following: bool = False
    stats: ProfileStats
    creator: Optional[CreatorProfile] = None


class UserProfileResponse(CamelModel):
    user: UserProfile


class UpdateProfileRequest(CamelModel):
    display_name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    social_links: Optional[dict[str, Any]] = None
    specialties: Optional[list[str]] = None


class ProfileUpdatedResponse(CamelModel):
    message: str
    user: UserProfile


class FollowResponse(CamelModel):
    message: str
    following: bool
    followers: int


# Search

class CreatorCard(CamelModel):
    id: str
    username: str
    display_name: str
    avatar: Optional[str] = None
    is_verified: bool
    followers: int
    total_videos: int
    total_views: int = 0
    specialties: list[str] = Field(default_factory=list)


class CreatorSearchResponse(CamelModel):
    creators: list[CreatorCard]
    pagination: Pagination
    query: str


class VideoSearchResponse(CamelModel):
    videos: list[VideoCard]
    pagination: Pagination
    filters: dict[str, Optional[str]]


class Suggestion(CamelModel):
    type: str
    value: str
    label: str
    id: Optional[str] = None
    thumbnail: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None
    views: Optional[int] = None
    followers: Optional[int] = None
    count: Optional[int] = None
    verified: Optional[bool] = None


class SuggestionsResponse(CamelModel):
    suggestions: list[Suggestion]
    type: str
    query: Optional[str] = None


# Dashboard

class DashboardStats(CamelModel):
    total_revenue: float
    total_views: int
    total_likes: int
    total_videos: int
    total_sales: int
    followers: int
    revenue_growth: float
    views_growth: float


class DashboardVideo(CamelModel):
    id: str
    title: str
    thumbnail_url: str
    views: int
    likes: int = 0
    revenue: float
    created_at: datetime


class RevenuePoint(CamelModel):
    date: str
    revenue: float
    sales: int


class CategoryPerformance(CamelModel):
    category: str
    count: int
    revenue: float


class DashboardAnalytics(CamelModel):
    top_categories: list[CategoryPerformance]
    conversion_rate: float
    repeat_customers: float


class DashboardData(CamelModel):
    stats: DashboardStats
    recent_videos: list[DashboardVideo]
    top_performers: list[DashboardVideo]
    revenue_chart: list[RevenuePoint]
    analytics: DashboardAnalytics


class DashboardResponse(CamelModel):
    data: DashboardData


# Trending and categories

class TrendingSummary(CamelModel):
    hot_videos: int
    top_category: Optional[str] = None
    rising_creator: Optional[str] = None
    rising_creator_followers: int = 0


class CategorySummary(CamelModel):
    category: str
    count: int
    views: int
    revenue: float
    likes: int = 0


class PlatformStats(CamelModel):
    total_videos: int
    total_creators: int
    total_views: int


class TrendingResponse(CamelModel):
    trending: TrendingSummary
    trending_videos: list[VideoCard]
    featured_videos: list[VideoCard]
    trending_creators: list[CreatorCard]
    categories: list[CategorySummary]
    stats: PlatformStats


class CategoryStatsResponse(CamelModel):
    categories: dict[str, CategorySummary]
    trending: list[str]
    growth: dict[str, int]
    total_categories: int
    total_videos: int
    total_views: int


class FeaturedCategoriesResponse(CamelModel):
    categories: dict[str, list[VideoCard]]
    featured: list[VideoCard]
    total_featured: int
    categories_with_content: int
