"""
Tip model - a one-off payment from a user to a creator.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Float, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database.base import Base, generate_id, utcnow
from marketplace.database.models.enums import TipStatus


class Tip(Base):
    __tablename__ = "tips"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    sender_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    creator_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stripe_payment_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TipStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id])
    creator: Mapped["User"] = relationship("User", foreign_keys=[creator_id])
