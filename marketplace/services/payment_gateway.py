"""
Stripe payment gateway client.

Constructed once with explicit credentials and injected into services; every
SDK call passes the api key instead of relying on a module-level global.
Blocking SDK calls run in worker threads.
"""
import asyncio
import json
import logging
from typing import Any, Optional

import stripe

from marketplace.core.exceptions import PaymentGatewayException, WebhookSignatureException

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount (dollars) to minor units (cents)."""
    return int(round(amount * 100))


def from_minor_units(amount: int) -> float:
    return round(amount / 100.0, 2)


def calculate_platform_fee(amount: float, fee_percentage: float) -> float:
    """
    Platform fee for a gross amount, rounded to whole cents.

    >>> calculate_platform_fee(9.99, 0.10)
    1.0
    """
    return from_minor_units(int(round(to_minor_units(amount) * fee_percentage)))


class StripeGateway:
    """Thin async wrapper around the Stripe SDK calls the marketplace makes."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        currency: str = "usd",
        max_network_retries: int = 2,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        stripe.max_network_retries = max_network_retries

    async def _call(self, operation: str, func, *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            logger.error(
                f"Stripe {operation} failed: {type(e).__name__}: {e.user_message or e}",
                extra={"context": {"operation": operation, "stripe_code": e.code}}
            )
            raise PaymentGatewayException(operation, str(e)) from e

    # ------------------------------------------------------------------
    # Customers and one-off payments
    # ------------------------------------------------------------------

    async def create_customer(self, email: str, name: Optional[str], user_id: str):
        return await self._call(
            "create_customer",
            stripe.Customer.create,
            email=email,
            name=name or email,
            metadata={"userId": user_id},
        )

    async def create_video_license_payment(
        self,
        video_id: str,
        license_type: str,
        amount: float,
        customer_id: str,
        metadata: Optional[dict] = None,
    ):
        """Create a payment intent for a license; metadata carries the webhook routing keys."""
        return await self._call(
            "create_video_license_payment",
            stripe.PaymentIntent.create,
            amount=to_minor_units(amount),
            currency=self.currency,
            customer=customer_id,
            metadata={
                "type": "video_license",
                "videoId": video_id,
                "licenseType": license_type,
                **(metadata or {}),
            },
            automatic_payment_methods={"enabled": True},
        )

    async def create_tip_payment(
        self,
        creator_id: str,
        user_id: str,
        amount: float,
        customer_id: str,
        message: Optional[str] = None,
    ):
        return await self._call(
            "create_tip_payment",
            stripe.PaymentIntent.create,
            amount=to_minor_units(amount),
            currency=self.currency,
            customer=customer_id,
            metadata={
                "type": "tip",
                "userId": user_id,
                "creatorId": creator_id,
                "message": message or "",
            },
            automatic_payment_methods={"enabled": True},
        )

    async def refund_payment(self, payment_intent_id: str, amount: Optional[float] = None):
        params = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = to_minor_units(amount)
        return await self._call("refund_payment", stripe.Refund.create, **params)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def create_subscription_checkout(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict] = None,
    ):
        metadata = {"type": "subscription", **(metadata or {})}
        return await self._call(
            "create_subscription_checkout",
            stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )

    async def get_subscription(self, subscription_id: str):
        return await self._call("get_subscription", stripe.Subscription.retrieve, subscription_id)

    async def update_subscription(self, subscription_id: str, price_id: str):
        """Swap the price on a subscription's single item."""
        subscription = await self.get_subscription(subscription_id)
        item_id = subscription["items"]["data"][0]["id"]
        return await self._call(
            "update_subscription",
            stripe.Subscription.modify,
            subscription_id,
            items=[{"id": item_id, "price": price_id}],
        )

    async def cancel_subscription(self, subscription_id: str):
        return await self._call("cancel_subscription", stripe.Subscription.cancel, subscription_id)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def construct_event(self, payload: bytes, signature: str) -> dict:
        """
        Verify a webhook payload's signature and return the event as plain dicts.

        Raises:
            WebhookSignatureException: If the signature or payload is invalid
        """
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureException() from e
        except ValueError as e:
            raise WebhookSignatureException("Invalid webhook payload") from e
        return json.loads(payload)
