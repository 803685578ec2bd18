"""
Purchase and tip requests: validates what the buyer asked for against stored
prices, then opens a payment intent and records it as PENDING.

Completion is never decided here; the webhook handler moves the rows forward.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings
from marketplace.core.exceptions import (
    CreatorNotFoundException,
    DuplicatePurchaseException,
    PriceMismatchException,
    ValidationException,
    VideoNotFoundException,
)
from marketplace.core.logging import log_event
from marketplace.database.models.enums import LicenseType
from marketplace.database.models.user import User
from marketplace.models.schemas import CreatePaymentIntentRequest, PaymentIntentResponse
from marketplace.repositories import (
    purchase_db_repository,
    tip_db_repository,
    user_db_repository,
    video_db_repository,
)
from marketplace.services.payment_gateway import StripeGateway

logger = logging.getLogger(__name__)


async def ensure_stripe_customer(session: AsyncSession, gateway: StripeGateway, user: User) -> str:
    """Return the user's Stripe customer id, creating and persisting one if needed."""
    if user.stripe_customer_id:
        return user.stripe_customer_id

    customer = await gateway.create_customer(
        email=user.email,
        name=user.display_name or user.name,
        user_id=user.id,
    )
    await user_db_repository.set_stripe_customer_id(session, user.id, customer["id"])
    user.stripe_customer_id = customer["id"]
    logger.info(f"Created Stripe customer {customer['id']} for user {user.id}")
    return customer["id"]


class PurchaseService:
    """Creates payment intents for license purchases and tips."""

    def __init__(self, session: AsyncSession, gateway: StripeGateway, settings: Settings):
        self.session = session
        self.gateway = gateway
        self.settings = settings

    @property
    def currency(self) -> str:
        return self.settings.stripe_currency.upper()

    async def create_payment_intent(self, user: User, request: CreatePaymentIntentRequest) -> PaymentIntentResponse:
        if not request.type or not request.amount:
            raise ValidationException("Missing required fields")

        if request.type == "video_license":
            return await self._license_payment(user, request)
        if request.type == "tip":
            return await self._tip_payment(user, request)
        raise ValidationException("Invalid payment type")

    async def _license_payment(self, user: User, request: CreatePaymentIntentRequest) -> PaymentIntentResponse:
        if not request.video_id or not request.license_type:
            raise ValidationException("Missing videoId or licenseType for video license purchase")

        video = await video_db_repository.get_by_id(self.session, request.video_id)
        if video is None:
            raise VideoNotFoundException(request.video_id)

        try:
            license_type = LicenseType.parse(request.license_type)
        except ValueError:
            raise ValidationException("Invalid license type")

        price = video.price_for(license_type.value)
        if not price or price <= 0:
            raise ValidationException("This license type is not available for purchase")

        if abs(price - request.amount) > self.settings.price_tolerance:
            log_event(
                level="WARNING",
                logger=__name__,
                function="_license_payment",
                operation="create_payment_intent",
                event="price_mismatch",
                message="Submitted amount does not match license price",
                context={"video_id": video.id, "license_type": license_type.value,
                         "expected": price, "submitted": request.amount},
            )
            raise PriceMismatchException(price, request.amount)

        if await purchase_db_repository.has_completed(self.session, user.id, video.id, license_type.value):
            raise DuplicatePurchaseException(video.id, license_type.value)

        customer_id = await ensure_stripe_customer(self.session, self.gateway, user)
        intent = await self.gateway.create_video_license_payment(
            video_id=video.id,
            license_type=license_type.value,
            amount=price,
            customer_id=customer_id,
            metadata={
                "userId": user.id,
                "videoTitle": video.title,
                "creatorId": video.creator_id,
            },
        )

        await purchase_db_repository.create_pending(
            self.session,
            user_id=user.id,
            video_id=video.id,
            license_type=license_type.value,
            amount=price,
            currency=self.currency,
            stripe_payment_id=intent["id"],
        )
        logger.info(f"Created license payment {intent['id']} for video {video.id} ({license_type.value})")
        return PaymentIntentResponse(client_secret=intent["client_secret"], payment_intent_id=intent["id"])

    async def _tip_payment(self, user: User, request: CreatePaymentIntentRequest) -> PaymentIntentResponse:
        if not request.creator_id:
            raise ValidationException("Missing creatorId for tip payment")

        creator = await user_db_repository.get_by_id(self.session, request.creator_id)
        if creator is None:
            raise CreatorNotFoundException(request.creator_id)

        if creator.id == user.id:
            raise ValidationException("Cannot tip yourself")

        if request.amount <= 0:
            raise ValidationException("Tip amount must be greater than zero")

        customer_id = await ensure_stripe_customer(self.session, self.gateway, user)
        intent = await self.gateway.create_tip_payment(
            creator_id=creator.id,
            user_id=user.id,
            amount=request.amount,
            customer_id=customer_id,
            message=request.message,
        )

        await tip_db_repository.create_pending(
            self.session,
            sender_id=user.id,
            creator_id=creator.id,
            amount=round(request.amount, 2),
            currency=self.currency,
            stripe_payment_id=intent["id"],
            message=_trim_message(request.message),
        )
        logger.info(f"Created tip payment {intent['id']} for creator {creator.id}")
        return PaymentIntentResponse(client_secret=intent["client_secret"], payment_intent_id=intent["id"])


def _trim_message(message: Optional[str]) -> Optional[str]:
    if message is None:
        return None
    message = message.strip()
    return message[:500] or None
