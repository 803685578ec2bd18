"""
CounterMutation model - one row per applied denormalized counter change.

Webhook handlers insert a row keyed by "<payment id>:<mutation>" in the same
transaction as the counter update; a redelivered event finds the key already
present and skips the update.
"""
from datetime import datetime
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from marketplace.database.base import Base, utcnow


class CounterMutation(Base):
    __tablename__ = "counter_mutations"

    idempotency_key: Mapped[str] = mapped_column(String(300), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
