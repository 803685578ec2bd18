"""
Subscription database repository - rows mirrored from provider subscription events.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.subscription import Subscription
from marketplace.database.models.enums import SubscriptionStatus

_CURRENT_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.PAST_DUE.value)


async def get_by_stripe_id(session: AsyncSession, stripe_subscription_id: str) -> Optional[Subscription]:
    stmt = select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def upsert(
    session: AsyncSession,
    stripe_subscription_id: str,
    user_id: str,
    tier: str,
    status: str,
    current_period_start: Optional[datetime] = None,
    current_period_end: Optional[datetime] = None,
) -> Subscription:
    """
    Create or overwrite the subscription row for a provider subscription id.
    """
    subscription = await get_by_stripe_id(session, stripe_subscription_id)
    if subscription is None:
        subscription = Subscription(
            stripe_subscription_id=stripe_subscription_id,
            user_id=user_id,
        )
        session.add(subscription)
    subscription.tier = tier
    subscription.status = status
    if current_period_start is not None:
        subscription.current_period_start = current_period_start
    if current_period_end is not None:
        subscription.current_period_end = current_period_end
    await session.flush()
    return subscription


async def get_current_for_user(session: AsyncSession, user_id: str) -> Optional[Subscription]:
    """Latest ACTIVE or PAST_DUE subscription for a user."""
    stmt = (
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status.in_(_CURRENT_STATUSES),
        )
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_for_user(session: AsyncSession, user_id: str) -> Optional[Subscription]:
    stmt = (
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
