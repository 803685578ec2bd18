import json

import pytest
import requests
import stripe
from google.api_core import exceptions as google_exceptions

from marketplace.core.exceptions import PaymentGatewayException, WebhookSignatureException
from marketplace.services.payment_gateway import (
    StripeGateway,
    calculate_platform_fee,
    from_minor_units,
    to_minor_units,
)
from marketplace.utils import retry
from tests.conftest import sign_webhook, webhook_event


@pytest.mark.parametrize("amount,fee,expected", [
    (9.99, 0.10, 1.0),
    (49.99, 0.10, 5.0),
    (10.00, 0.05, 0.5),
    (0.01, 0.10, 0.0),
])
def test_platform_fee_rounds_to_cents(amount, fee, expected):
    assert calculate_platform_fee(amount, fee) == expected


def test_minor_unit_conversion():
    assert to_minor_units(19.99) == 1999
    assert from_minor_units(1999) == 19.99


@pytest.fixture
def stripe_gateway():
    return StripeGateway(api_key="sk_test_unit", webhook_secret="whsec_unit")


async def test_license_payment_sends_cents_and_routing_metadata(stripe_gateway, monkeypatch):
    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "pi_1", "client_secret": "pi_1_secret"}

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    intent = await stripe_gateway.create_video_license_payment(
        "vid_1", "COMMERCIAL", 49.99, "cus_1", metadata={"userId": "u1", "creatorId": "c1"},
    )

    assert intent["id"] == "pi_1"
    assert captured["amount"] == 4999
    assert captured["currency"] == "usd"
    assert captured["api_key"] == "sk_test_unit"
    assert captured["metadata"] == {
        "type": "video_license",
        "videoId": "vid_1",
        "licenseType": "COMMERCIAL",
        "userId": "u1",
        "creatorId": "c1",
    }


async def test_provider_errors_are_wrapped(stripe_gateway, monkeypatch):
    def fake_create(**kwargs):
        raise stripe.InvalidRequestError("No such customer: 'cus_gone'", "customer")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    with pytest.raises(PaymentGatewayException) as exc_info:
        await stripe_gateway.create_tip_payment("c1", "u1", 5.0, "cus_gone")
    assert exc_info.value.operation == "create_tip_payment"
    assert exc_info.value.message == "Payment provider error during create_tip_payment"


async def test_update_subscription_swaps_item_price(stripe_gateway, monkeypatch):
    modified = {}

    monkeypatch.setattr(
        stripe.Subscription, "retrieve",
        lambda subscription_id, **kwargs: {"id": subscription_id, "items": {"data": [{"id": "si_9"}]}},
    )

    def fake_modify(subscription_id, **kwargs):
        modified.update(kwargs, subscription_id=subscription_id)
        return {"id": subscription_id}

    monkeypatch.setattr(stripe.Subscription, "modify", fake_modify)

    await stripe_gateway.update_subscription("sub_9", "price_premium_monthly")

    assert modified["subscription_id"] == "sub_9"
    assert modified["items"] == [{"id": "si_9", "price": "price_premium_monthly"}]


def test_construct_event_verifies_signature(stripe_gateway):
    payload = webhook_event("payment_intent.succeeded", {"id": "pi_1", "metadata": {"type": "tip"}})

    event = stripe_gateway.construct_event(payload, sign_webhook(payload, "whsec_unit"))

    assert event["type"] == "payment_intent.succeeded"
    assert event["data"]["object"]["metadata"] == {"type": "tip"}


def test_construct_event_rejects_tampered_payload(stripe_gateway):
    payload = webhook_event("payment_intent.succeeded", {"id": "pi_1", "amount": 100})
    signature = sign_webhook(payload, "whsec_unit")
    tampered = json.dumps({**json.loads(payload), "id": "evt_forged"}).encode("utf-8")

    with pytest.raises(WebhookSignatureException):
        stripe_gateway.construct_event(tampered, signature)


@pytest.mark.parametrize("error,expected", [
    (google_exceptions.ServiceUnavailable("down"), True),
    (google_exceptions.TooManyRequests("slow down"), True),
    (google_exceptions.NotFound("missing"), False),
    (requests.exceptions.ConnectionError("reset"), True),
    (TimeoutError(), True),
    (RuntimeError("upstream returned 503"), True),
    (ValueError("bad key"), False),
])
def test_is_transient_error(error, expected):
    assert retry.is_transient_error(error) is expected


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    return delays


async def test_retry_recovers_from_transient_errors(sleeps):
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise google_exceptions.ServiceUnavailable("try later")
        return "ok"

    result = await retry.retry_with_backoff(flaky, max_retries=3, base_delay=0.5, operation_name="upload")

    assert result == "ok"
    assert sleeps == [0.5, 1.0]


async def test_retry_gives_up_after_max_retries(sleeps):
    async def always_down():
        raise google_exceptions.ServiceUnavailable("still down")

    with pytest.raises(google_exceptions.ServiceUnavailable):
        await retry.retry_with_backoff(always_down, max_retries=2, base_delay=1.0)
    assert sleeps == [1.0, 2.0]


async def test_retry_does_not_retry_permanent_errors(sleeps):
    async def forbidden():
        raise google_exceptions.Forbidden("no access")

    with pytest.raises(google_exceptions.Forbidden):
        await retry.retry_with_backoff(forbidden)
    assert sleeps == []


async def test_refund_payment_sends_cents(stripe_gateway, monkeypatch):
    calls = []

    def fake_refund(**kwargs):
        calls.append(kwargs)
        return {"id": f"re_{len(calls)}", "status": "succeeded"}

    monkeypatch.setattr(stripe.Refund, "create", fake_refund)

    partial = await stripe_gateway.refund_payment("pi_7", amount=4.5)
    full = await stripe_gateway.refund_payment("pi_8")

    assert partial["id"] == "re_1"
    assert full["status"] == "succeeded"
    assert calls == [
        {"payment_intent": "pi_7", "amount": 450, "api_key": "sk_test_unit"},
        {"payment_intent": "pi_8", "api_key": "sk_test_unit"},
    ]
