"""
Tip database repository.
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.tip import Tip
from marketplace.database.models.enums import TipStatus


async def create_pending(
    session: AsyncSession,
    sender_id: str,
    creator_id: str,
    amount: float,
    currency: str,
    stripe_payment_id: str,
    message: Optional[str] = None,
) -> Tip:
    tip = Tip(
        sender_id=sender_id,
        creator_id=creator_id,
        amount=amount,
        currency=currency,
        message=message,
        stripe_payment_id=stripe_payment_id,
        status=TipStatus.PENDING.value,
    )
    session.add(tip)
    await session.flush()
    await session.refresh(tip)
    return tip


async def get_by_stripe_payment_id(session: AsyncSession, stripe_payment_id: str) -> Optional[Tip]:
    stmt = select(Tip).where(Tip.stripe_payment_id == stripe_payment_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def upsert_completed(
    session: AsyncSession,
    stripe_payment_id: str,
    sender_id: str,
    creator_id: str,
    amount: float,
    currency: str,
    message: Optional[str] = None,
) -> Tip:
    tip = await get_by_stripe_payment_id(session, stripe_payment_id)
    if tip is None:
        tip = Tip(
            sender_id=sender_id,
            creator_id=creator_id,
            message=message,
            stripe_payment_id=stripe_payment_id,
        )
        session.add(tip)
    tip.amount = amount
    tip.currency = currency
    tip.status = TipStatus.COMPLETED.value
    await session.flush()
    return tip


async def set_status(session: AsyncSession, stripe_payment_id: str, status: str) -> Optional[Tip]:
    tip = await get_by_stripe_payment_id(session, stripe_payment_id)
    if tip is None:
        return None
    tip.status = status
    await session.flush()
    return tip
