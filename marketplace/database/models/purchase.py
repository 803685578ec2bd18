"""
Purchase model - a license bought for a video.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Float, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database.base import Base, generate_id, utcnow
from marketplace.database.models.enums import PurchaseStatus


class Purchase(Base):
    """
    Purchases table - one row per payment intent.

    stripe_payment_id is the webhook idempotency key. At most one COMPLETED row
    may exist per (user, video, license type).
    """
    __tablename__ = "purchases"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    video_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("videos.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    license_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    stripe_payment_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PurchaseStatus.PENDING.value, index=True
    )
    # Set when the payment provider confirms the sale
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    user: Mapped["User"] = relationship("User")
    video: Mapped["Video"] = relationship("Video")

    __table_args__ = (
        Index(
            "uq_purchases_completed_license",
            "user_id", "video_id", "license_type",
            unique=True,
            postgresql_where=text("status = 'COMPLETED'"),
            sqlite_where=text("status = 'COMPLETED'"),
        ),
    )
