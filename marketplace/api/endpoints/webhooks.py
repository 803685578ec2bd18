"""
Payment provider webhook endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from marketplace.api.deps import get_webhook_service
from marketplace.models.schemas import WebhookAck
from marketplace.services.webhook_service import WebhookService

router = APIRouter()


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Verify and apply a Stripe event. Handler failures are logged and still
    acknowledged; only a bad signature is rejected.
    """
    payload = await request.body()
    await service.process(payload, stripe_signature)
    return WebhookAck(received=True)
