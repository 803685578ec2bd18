"""
Subscription checkout, lookup, plan change and cancellation.

State changes are mirrored into the Subscription table by the webhook handler;
this service only talks to the provider and reads the mirrored rows.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings
from marketplace.core.exceptions import NotFoundException, ValidationException
from marketplace.core.logging import operation_logger
from marketplace.database.models.subscription import Subscription
from marketplace.database.models.user import User
from marketplace.models.schemas import CheckoutSessionResponse, CreateSubscriptionRequest
from marketplace.repositories import subscription_db_repository
from marketplace.services.payment_gateway import StripeGateway
from marketplace.services.purchase_service import ensure_stripe_customer

logger = logging.getLogger(__name__)

VALID_TIERS = ("premium", "pro")
VALID_BILLING = ("monthly", "yearly")


def _validate_plan(request: CreateSubscriptionRequest) -> tuple[str, str]:
    if not request.tier or not request.billing:
        raise ValidationException("Missing tier or billing period")
    tier = request.tier.lower()
    billing = request.billing.lower()
    if tier not in VALID_TIERS:
        raise ValidationException("Invalid subscription tier")
    if billing not in VALID_BILLING:
        raise ValidationException("Invalid billing period")
    return tier, billing


class SubscriptionService:

    def __init__(self, session: AsyncSession, gateway: StripeGateway, settings: Settings):
        self.session = session
        self.gateway = gateway
        self.settings = settings

    def _price_id(self, tier: str, billing: str) -> str:
        price_id = self.settings.get_subscription_price_id(tier, billing)
        if not price_id:
            raise ValidationException("Invalid subscription configuration")
        return price_id

    @operation_logger("subscription_checkout")
    async def create_checkout(self, user: User, request: CreateSubscriptionRequest) -> CheckoutSessionResponse:
        """
        Open a hosted checkout session for a new subscription.

        Raises:
            ValidationException: Bad tier/billing or an ACTIVE subscription exists
            PaymentGatewayException: Provider failure
        """
        tier, billing = _validate_plan(request)

        if await subscription_db_repository.get_active_for_user(self.session, user.id):
            raise ValidationException("User already has an active subscription")

        price_id = self._price_id(tier, billing)
        customer_id = await ensure_stripe_customer(self.session, self.gateway, user)

        base_url = self.settings.frontend_base_url.rstrip("/")
        checkout = await self.gateway.create_subscription_checkout(
            customer_id=customer_id,
            price_id=price_id,
            success_url=f"{base_url}/dashboard?subscription=success",
            cancel_url=f"{base_url}/pricing?subscription=canceled",
            metadata={"userId": user.id, "tier": tier, "billing": billing},
        )
        logger.info(f"Created subscription checkout {checkout['id']} for user {user.id} ({tier}/{billing})")
        return CheckoutSessionResponse(checkout_url=checkout["url"], session_id=checkout["id"])

    async def get_current(self, user: User) -> Optional[Subscription]:
        return await subscription_db_repository.get_current_for_user(self.session, user.id)

    @operation_logger("subscription_change")
    async def change_plan(self, user: User, request: CreateSubscriptionRequest) -> Subscription:
        """Swap the price of the user's active subscription; the tier follows by webhook."""
        tier, billing = _validate_plan(request)
        subscription = await subscription_db_repository.get_active_for_user(self.session, user.id)
        if subscription is None:
            raise NotFoundException("No active subscription")

        await self.gateway.update_subscription(subscription.stripe_subscription_id, self._price_id(tier, billing))
        logger.info(f"Requested plan change to {tier}/{billing} for subscription {subscription.stripe_subscription_id}")
        return subscription

    @operation_logger("subscription_cancel")
    async def cancel(self, user: User) -> Subscription:
        subscription = await subscription_db_repository.get_active_for_user(self.session, user.id)
        if subscription is None:
            raise NotFoundException("No active subscription")

        await self.gateway.cancel_subscription(subscription.stripe_subscription_id)
        logger.info(f"Requested cancellation of subscription {subscription.stripe_subscription_id}")
        return subscription
