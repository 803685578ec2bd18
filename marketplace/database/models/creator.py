"""
Creator model - earnings and catalogue counters for users who sell videos.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, Boolean, Float, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database.base import Base, generate_id, utcnow


class Creator(Base):
    """
    Creators table - 1:1 with users, created on the first creator action.
    """
    __tablename__ = "creators"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    specialties: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_earnings: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    monthly_earnings: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    lifetime_revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_purchases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_videos: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    user: Mapped["User"] = relationship("User", back_populates="creator_profile")
