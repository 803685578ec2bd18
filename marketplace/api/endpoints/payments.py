"""
Payment endpoints: license and tip payment intents, and subscriptions.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_app_settings, get_current_user, get_payment_gateway
from marketplace.database.dependencies import get_db
from marketplace.database.models.user import User
from marketplace.models.schemas import (
    CheckoutSessionResponse,
    CreatePaymentIntentRequest,
    CreateSubscriptionRequest,
    CurrentSubscriptionResponse,
    MessageResponse,
    PaymentIntentResponse,
    SubscriptionResponse,
)
from marketplace.services.payment_gateway import StripeGateway
from marketplace.services.purchase_service import PurchaseService
from marketplace.services.subscription_service import SubscriptionService

router = APIRouter()


@router.post("/payments/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: CreatePaymentIntentRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    """Start a license purchase or a tip; completion arrives by webhook."""
    service = PurchaseService(session, gateway, get_app_settings())
    return await service.create_payment_intent(user, request)


@router.post("/payments/create-subscription", response_model=CheckoutSessionResponse)
async def create_subscription(
    request: CreateSubscriptionRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    service = SubscriptionService(session, gateway, get_app_settings())
    return await service.create_checkout(user, request)


@router.get("/payments/create-subscription", response_model=CurrentSubscriptionResponse)
async def get_subscription(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    """The caller's latest active or past-due subscription, if any."""
    service = SubscriptionService(session, gateway, get_app_settings())
    subscription = await service.get_current(user)
    return CurrentSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None
    )


@router.patch("/payments/create-subscription", response_model=MessageResponse)
async def change_subscription(
    request: CreateSubscriptionRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    service = SubscriptionService(session, gateway, get_app_settings())
    await service.change_plan(user, request)
    return MessageResponse(message="Subscription change requested")


@router.delete("/payments/create-subscription", response_model=MessageResponse)
async def cancel_subscription(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    service = SubscriptionService(session, gateway, get_app_settings())
    await service.cancel(user)
    return MessageResponse(message="Subscription cancellation requested")
