"""
Video model - a listed AI-generated video and its license prices.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Float, BigInteger, Text, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database.base import Base, generate_id, utcnow
from marketplace.database.models.enums import VideoStatus


class Video(Base):
    """
    Videos table - media references, license prices and denormalized counters.

    A row starts as DRAFT while its thumbnail is produced and becomes PUBLISHED
    once the thumbnail is stored. Like counts are not stored here; they are
    counted from the likes table when read.
    """
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    creator_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    video_url: Mapped[str] = mapped_column(Text, nullable=False)
    storage_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    thumbnail_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    aspect_ratio: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    fps: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ai_model: Mapped[str] = mapped_column(String(200), nullable=False)
    prompts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    style: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    personal_license: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    commercial_license: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    extended_license: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    exclusive_rights: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_available_for_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VideoStatus.DRAFT.value, index=True
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    purchases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    creator: Mapped["User"] = relationship("User", back_populates="videos")

    def price_for(self, license_type: str) -> Optional[float]:
        """Stored price for a license type name, or None when not offered."""
        return {
            "PERSONAL": self.personal_license,
            "COMMERCIAL": self.commercial_license,
            "EXTENDED": self.extended_license,
            "EXCLUSIVE": self.exclusive_rights,
        }.get(license_type)

    __table_args__ = (
        Index("idx_videos_public_listing", "status", "is_public", "created_at"),
    )
