"""
User model - an account signed in through the external auth provider.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database.base import Base, generate_id, utcnow
from marketplace.database.models.enums import UserType, SubscriptionTier


class User(Base):
    """
    Users table - created on first sign-in from session claims.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    social_links: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False, default=UserType.BROWSER.value)
    subscription_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionTier.FREE.value
    )
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    # Relationships
    creator_profile: Mapped[Optional["Creator"]] = relationship(
        "Creator",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan"
    )
    videos: Mapped[list["Video"]] = relationship(
        "Video",
        back_populates="creator",
        cascade="all, delete-orphan"
    )
