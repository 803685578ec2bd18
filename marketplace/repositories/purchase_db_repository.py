"""
Purchase database repository - license purchases keyed by payment intent id.
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.exceptions import DuplicatePurchaseException
from marketplace.database.base import utcnow
from marketplace.database.models.purchase import Purchase
from marketplace.database.models.video import Video
from marketplace.database.models.enums import PurchaseStatus


async def create_pending(
    session: AsyncSession,
    user_id: str,
    video_id: str,
    license_type: str,
    amount: float,
    currency: str,
    stripe_payment_id: str,
) -> Purchase:
    purchase = Purchase(
        user_id=user_id,
        video_id=video_id,
        license_type=license_type,
        amount=amount,
        currency=currency,
        stripe_payment_id=stripe_payment_id,
        status=PurchaseStatus.PENDING.value,
    )
    session.add(purchase)
    await session.flush()
    await session.refresh(purchase)
    return purchase


async def get_by_stripe_payment_id(session: AsyncSession, stripe_payment_id: str) -> Optional[Purchase]:
    stmt = select(Purchase).where(Purchase.stripe_payment_id == stripe_payment_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def has_completed(session: AsyncSession, user_id: str, video_id: str, license_type: str) -> bool:
    stmt = select(Purchase.id).where(
        Purchase.user_id == user_id,
        Purchase.video_id == video_id,
        Purchase.license_type == license_type,
        Purchase.status == PurchaseStatus.COMPLETED.value,
    )
    result = await session.execute(stmt)
    return result.first() is not None


async def owned_license_types(session: AsyncSession, user_id: str, video_id: str) -> list[str]:
    stmt = select(Purchase.license_type).where(
        Purchase.user_id == user_id,
        Purchase.video_id == video_id,
        Purchase.status == PurchaseStatus.COMPLETED.value,
    )
    result = await session.execute(stmt)
    return sorted(set(result.scalars().all()))


async def upsert_completed(
    session: AsyncSession,
    stripe_payment_id: str,
    user_id: str,
    video_id: str,
    license_type: str,
    amount: float,
    currency: str,
) -> Purchase:
    """
    Mark the purchase for a payment intent COMPLETED, creating it if absent.

    Raises:
        DuplicatePurchaseException: If the user already holds another COMPLETED
            purchase of the same license for this video
    """
    purchase = await get_by_stripe_payment_id(session, stripe_payment_id)
    try:
        async with session.begin_nested():
            if purchase is None:
                purchase = Purchase(
                    user_id=user_id,
                    video_id=video_id,
                    license_type=license_type,
                    stripe_payment_id=stripe_payment_id,
                    amount=amount,
                    currency=currency,
                    status=PurchaseStatus.COMPLETED.value,
                    completed_at=utcnow(),
                )
                session.add(purchase)
            else:
                purchase.status = PurchaseStatus.COMPLETED.value
                purchase.amount = amount
                purchase.currency = currency
                purchase.completed_at = purchase.completed_at or utcnow()
            await session.flush()
    except IntegrityError as e:
        raise DuplicatePurchaseException(video_id, license_type) from e
    return purchase


async def set_status(session: AsyncSession, stripe_payment_id: str, status: str) -> Optional[Purchase]:
    purchase = await get_by_stripe_payment_id(session, stripe_payment_id)
    if purchase is None:
        return None
    purchase.status = status
    await session.flush()
    return purchase


async def list_by_user(session: AsyncSession, user_id: str) -> list[Purchase]:
    """A user's purchases, newest first, with video and creator loaded."""
    stmt = (
        select(Purchase)
        .options(selectinload(Purchase.video).selectinload(Video.creator))
        .where(Purchase.user_id == user_id)
        .order_by(Purchase.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
