"""
Webhook reconciliation - applies verified payment provider events to the store.

Each sub-handler runs in its own session. A failing handler is rolled back and
logged, and the provider still receives an acknowledgement; redeliveries are
made safe by the payment-intent keyed upserts and the counter mutation keys.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.config import Settings
from marketplace.core.exceptions import WebhookSignatureException
from marketplace.core.logging import log_event, log_operation_error
from marketplace.database.models.enums import (
    PurchaseStatus,
    SubscriptionStatus,
    SubscriptionTier,
    TipStatus,
)
from marketplace.database.models.user import User
from marketplace.repositories import (
    counter_mutation_db_repository,
    creator_db_repository,
    purchase_db_repository,
    subscription_db_repository,
    tip_db_repository,
    user_db_repository,
    video_db_repository,
)
from marketplace.services.payment_gateway import (
    StripeGateway,
    calculate_platform_fee,
    from_minor_units,
)

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]

# Provider subscription status -> stored status; unlisted values leave the row unchanged
STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE.value,
    "trialing": SubscriptionStatus.ACTIVE.value,
    "past_due": SubscriptionStatus.PAST_DUE.value,
    "unpaid": SubscriptionStatus.PAST_DUE.value,
    "canceled": SubscriptionStatus.CANCELED.value,
    "incomplete_expired": SubscriptionStatus.CANCELED.value,
}


def license_counter_key(payment_intent_id: str) -> str:
    return f"{payment_intent_id}:license-counters"


def tip_counter_key(payment_intent_id: str) -> str:
    return f"{payment_intent_id}:tip-earnings"


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def _first_item(subscription: Dict[str, Any]) -> Dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _subscription_periods(subscription: Dict[str, Any]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Billing period bounds; newer API versions carry them on the item instead."""
    item = _first_item(subscription)
    start = subscription.get("current_period_start") or item.get("current_period_start")
    end = subscription.get("current_period_end") or item.get("current_period_end")
    return _from_timestamp(start), _from_timestamp(end)


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if subscription_id:
        return subscription_id if isinstance(subscription_id, str) else subscription_id.get("id")
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


class WebhookService:
    """Verifies provider events and dispatches them to per-type handlers."""

    def __init__(
        self,
        gateway: StripeGateway,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.settings = settings
        self.handlers: Dict[str, Handler] = {
            "payment_intent.succeeded": self._payment_intent_succeeded,
            "payment_intent.payment_failed": self._payment_intent_failed,
            "checkout.session.completed": self._checkout_session_completed,
            "customer.subscription.created": self._subscription_created,
            "customer.subscription.updated": self._subscription_updated,
            "customer.subscription.deleted": self._subscription_deleted,
            "invoice.payment_succeeded": self._invoice_payment_succeeded,
            "invoice.payment_failed": self._invoice_payment_failed,
        }

    async def process(self, payload: bytes, signature: Optional[str]) -> None:
        """
        Verify and apply one webhook delivery.

        Raises:
            WebhookSignatureException: Missing header or failed verification;
                nothing has been written
        """
        if not signature:
            raise WebhookSignatureException("Missing stripe-signature header")

        event = self.gateway.construct_event(payload, signature)
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        log_event(
            level="INFO",
            logger=__name__,
            function="process",
            operation="stripe_webhook",
            event="webhook_received",
            message=f"Processing webhook event: {event_type}",
            context={"event_id": event.get("id"), "event_type": event_type, "object_id": obj.get("id")},
        )

        handler = self.handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled event type: {event_type}")
            return
        await self._run(event_type, handler, obj)

    async def _run(self, event_type: str, handler: Handler, obj: Dict[str, Any]) -> None:
        async with self.session_factory() as session:
            try:
                await handler(session, obj)
                await session.commit()
            except Exception as e:
                await session.rollback()
                log_operation_error(
                    logger=__name__,
                    function=handler.__name__,
                    operation="stripe_webhook",
                    error=e,
                    message=f"Error processing {event_type}",
                    context={"object_id": obj.get("id")},
                )

    # ------------------------------------------------------------------
    # One-off payments
    # ------------------------------------------------------------------

    async def _payment_intent_succeeded(self, session: AsyncSession, intent: Dict[str, Any]) -> None:
        payment_type = (intent.get("metadata") or {}).get("type")
        if payment_type == "video_license":
            await self._complete_license_purchase(session, intent)
        elif payment_type == "tip":
            await self._complete_tip(session, intent)
        else:
            logger.info(f"Ignoring succeeded payment intent {intent.get('id')} of type {payment_type!r}")

    async def _complete_license_purchase(self, session: AsyncSession, intent: Dict[str, Any]) -> None:
        metadata = intent.get("metadata") or {}
        video_id = metadata.get("videoId")
        license_type = metadata.get("licenseType")
        user_id = metadata.get("userId")
        if not video_id or not license_type or not user_id:
            logger.error(f"Missing required metadata for video license purchase {intent['id']}")
            return

        video = await video_db_repository.get_by_id(session, video_id)
        if video is None:
            logger.error(f"Video not found for payment {intent['id']}: {video_id}")
            return

        gross = from_minor_units(intent["amount"])
        purchase = await purchase_db_repository.upsert_completed(
            session,
            stripe_payment_id=intent["id"],
            user_id=user_id,
            video_id=video_id,
            license_type=license_type.upper(),
            amount=gross,
            currency=(intent.get("currency") or self.settings.stripe_currency).upper(),
        )

        if not await counter_mutation_db_repository.claim(session, license_counter_key(intent["id"])):
            logger.info(f"Counters for payment {intent['id']} already applied")
            return

        net = round(gross - calculate_platform_fee(gross, self.settings.license_platform_fee), 2)
        await video_db_repository.record_sale(session, video_id, gross)
        await creator_db_repository.get_or_create(session, video.creator_id)
        await creator_db_repository.credit_earnings(
            session, video.creator_id, net_amount=net, gross_amount=gross, purchases=1
        )
        logger.info(f"Video license purchase completed: {purchase.id} (gross {gross}, creator net {net})")

    async def _complete_tip(self, session: AsyncSession, intent: Dict[str, Any]) -> None:
        metadata = intent.get("metadata") or {}
        creator_id = metadata.get("creatorId")
        user_id = metadata.get("userId")
        if not creator_id or not user_id:
            logger.error(f"Missing required metadata for tip payment {intent['id']}")
            return

        gross = from_minor_units(intent["amount"])
        tip = await tip_db_repository.upsert_completed(
            session,
            stripe_payment_id=intent["id"],
            sender_id=user_id,
            creator_id=creator_id,
            amount=gross,
            currency=(intent.get("currency") or self.settings.stripe_currency).upper(),
            message=metadata.get("message") or None,
        )

        if not await counter_mutation_db_repository.claim(session, tip_counter_key(intent["id"])):
            logger.info(f"Earnings for tip {intent['id']} already credited")
            return

        net = round(gross - calculate_platform_fee(gross, self.settings.tip_platform_fee), 2)
        await creator_db_repository.get_or_create(session, creator_id)
        await creator_db_repository.credit_earnings(session, creator_id, net_amount=net, gross_amount=net)
        logger.info(f"Tip payment completed: {tip.id}, {net} to creator {creator_id}")

    async def _payment_intent_failed(self, session: AsyncSession, intent: Dict[str, Any]) -> None:
        payment_type = (intent.get("metadata") or {}).get("type")
        if payment_type in ("video_license", None):
            await purchase_db_repository.set_status(session, intent["id"], PurchaseStatus.FAILED.value)
        if payment_type in ("tip", None):
            await tip_db_repository.set_status(session, intent["id"], TipStatus.FAILED.value)
        logger.info(f"Payment failed for intent: {intent['id']}")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def _checkout_session_completed(self, session: AsyncSession, checkout: Dict[str, Any]) -> None:
        metadata = checkout.get("metadata") or {}
        if metadata.get("type") != "subscription":
            return

        user_id = metadata.get("userId")
        customer_id = checkout.get("customer")
        if user_id and customer_id:
            user = await user_db_repository.get_by_id(session, user_id)
            if user is not None and user.stripe_customer_id != customer_id:
                await user_db_repository.set_stripe_customer_id(session, user_id, customer_id)
        logger.info(f"Subscription checkout completed: {checkout.get('id')}")

    async def _resolve_subscriber(self, session: AsyncSession, subscription: Dict[str, Any]) -> Optional[User]:
        customer_id = subscription.get("customer")
        if customer_id:
            user = await user_db_repository.get_by_stripe_customer_id(session, customer_id)
            if user is not None:
                return user

        user_id = (subscription.get("metadata") or {}).get("userId")
        if not user_id:
            return None
        user = await user_db_repository.get_by_id(session, user_id)
        if user is not None and customer_id and not user.stripe_customer_id:
            await user_db_repository.set_stripe_customer_id(session, user.id, customer_id)
        return user

    def _subscription_tier(self, subscription: Dict[str, Any]) -> str:
        tier = (subscription.get("metadata") or {}).get("tier")
        if not tier:
            price = _first_item(subscription).get("price") or {}
            tier = self.settings.get_tier_for_price_id(price.get("id")) or price.get("lookup_key")
        if tier and tier.upper() == SubscriptionTier.PRO.value:
            return SubscriptionTier.PRO.value
        return SubscriptionTier.PREMIUM.value

    async def _subscription_created(self, session: AsyncSession, subscription: Dict[str, Any]) -> None:
        user = await self._resolve_subscriber(session, subscription)
        if user is None:
            logger.error(f"User not found for Stripe customer: {subscription.get('customer')}")
            return

        tier = self._subscription_tier(subscription)
        period_start, period_end = _subscription_periods(subscription)
        await subscription_db_repository.upsert(
            session,
            stripe_subscription_id=subscription["id"],
            user_id=user.id,
            tier=tier,
            status=SubscriptionStatus.ACTIVE.value,
            current_period_start=period_start,
            current_period_end=period_end,
        )
        await user_db_repository.update(session, user.id, subscription_tier=tier)
        logger.info(f"Subscription created for user: {user.id} ({tier})")

    async def _subscription_updated(self, session: AsyncSession, subscription: Dict[str, Any]) -> None:
        record = await subscription_db_repository.get_by_stripe_id(session, subscription["id"])
        if record is None:
            logger.warning(f"Update for unknown subscription {subscription['id']}")
            return

        status = STATUS_MAP.get(subscription.get("status"))
        if status is not None:
            record.status = status
        else:
            logger.info(f"Leaving subscription {record.id} unchanged for status {subscription.get('status')!r}")

        period_start, period_end = _subscription_periods(subscription)
        if period_start is not None:
            record.current_period_start = period_start
        if period_end is not None:
            record.current_period_end = period_end

        if record.status == SubscriptionStatus.CANCELED.value:
            user_tier = SubscriptionTier.FREE.value
        else:
            record.tier = self._subscription_tier(subscription)
            user_tier = record.tier
        await session.flush()
        await user_db_repository.update(session, record.user_id, subscription_tier=user_tier)
        logger.info(f"Subscription updated: {subscription['id']} -> {record.status}")

    async def _subscription_deleted(self, session: AsyncSession, subscription: Dict[str, Any]) -> None:
        record = await subscription_db_repository.get_by_stripe_id(session, subscription["id"])
        if record is None:
            logger.warning(f"Deletion for unknown subscription {subscription['id']}")
            return

        record.status = SubscriptionStatus.CANCELED.value
        await session.flush()
        await user_db_repository.update(session, record.user_id, subscription_tier=SubscriptionTier.FREE.value)
        logger.info(f"Subscription canceled: {subscription['id']}")

    async def _invoice_payment_succeeded(self, session: AsyncSession, invoice: Dict[str, Any]) -> None:
        logger.info(f"Invoice payment succeeded: {invoice.get('id')}")

    async def _invoice_payment_failed(self, session: AsyncSession, invoice: Dict[str, Any]) -> None:
        subscription_id = _invoice_subscription_id(invoice)
        if subscription_id:
            record = await subscription_db_repository.get_by_stripe_id(session, subscription_id)
            if record is not None and record.status == SubscriptionStatus.ACTIVE.value:
                record.status = SubscriptionStatus.PAST_DUE.value
                await session.flush()
        logger.info(f"Invoice payment failed: {invoice.get('id')}")
