from sqlalchemy import select

from marketplace.database.models import Subscription, User
from tests.conftest import auth_headers

SUBSCRIPTION_URL = "/api/payments/create-subscription"


async def add_subscription(session_factory, user, status="ACTIVE", tier="PREMIUM", stripe_id="sub_existing"):
    async with session_factory() as session:
        session.add(Subscription(user_id=user.id, tier=tier, status=status, stripe_subscription_id=stripe_id))
        await session.commit()


async def test_checkout_session_for_new_subscription(client, make_user, gateway, session_factory):
    user = await make_user()

    response = await client.post(
        SUBSCRIPTION_URL, json={"tier": "premium", "billing": "yearly"}, headers=auth_headers(user)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["sessionId"] == "cs_test_2"
    assert body["checkoutUrl"] == "https://checkout.stripe.test/cs_test_2"

    [call] = gateway.called("create_subscription_checkout")
    assert call["price_id"] == "price_premium_yearly"
    assert call["customer_id"] == "cus_test_1"
    assert call["success_url"] == "http://localhost:3000/dashboard?subscription=success"
    assert call["cancel_url"] == "http://localhost:3000/pricing?subscription=canceled"
    assert call["metadata"] == {"userId": user.id, "tier": "premium", "billing": "yearly"}

    async with session_factory() as session:
        assert (await session.scalars(select(Subscription))).all() == []
        stored = await session.get(User, user.id)
        assert stored.stripe_customer_id == "cus_test_1"


async def test_checkout_rejects_invalid_plans(client, make_user, gateway):
    user = await make_user()
    headers = auth_headers(user)

    missing = await client.post(SUBSCRIPTION_URL, json={"tier": "pro"}, headers=headers)
    assert missing.json()["error"] == "Missing tier or billing period"

    bad_tier = await client.post(SUBSCRIPTION_URL, json={"tier": "gold", "billing": "monthly"}, headers=headers)
    assert bad_tier.json()["error"] == "Invalid subscription tier"

    bad_billing = await client.post(SUBSCRIPTION_URL, json={"tier": "pro", "billing": "weekly"}, headers=headers)
    assert bad_billing.status_code == 400
    assert bad_billing.json()["error"] == "Invalid billing period"

    assert gateway.calls == []


async def test_checkout_rejects_existing_active_subscription(client, make_user, session_factory, gateway):
    user = await make_user()
    await add_subscription(session_factory, user)

    response = await client.post(
        SUBSCRIPTION_URL, json={"tier": "pro", "billing": "monthly"}, headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert response.json()["error"] == "User already has an active subscription"
    assert gateway.calls == []


async def test_past_due_subscription_does_not_block_checkout(client, make_user, session_factory):
    user = await make_user()
    await add_subscription(session_factory, user, status="PAST_DUE")

    response = await client.post(
        SUBSCRIPTION_URL, json={"tier": "pro", "billing": "monthly"}, headers=auth_headers(user)
    )

    assert response.status_code == 200


async def test_get_current_subscription(client, make_user, session_factory):
    user = await make_user()

    empty = await client.get(SUBSCRIPTION_URL, headers=auth_headers(user))
    assert empty.json() == {"subscription": None}

    await add_subscription(session_factory, user, tier="PRO")
    current = await client.get(SUBSCRIPTION_URL, headers=auth_headers(user))
    assert current.json()["subscription"]["tier"] == "PRO"
    assert current.json()["subscription"]["stripeSubscriptionId"] == "sub_existing"


async def test_change_plan_and_cancel(client, make_user, session_factory, gateway):
    user = await make_user()
    await add_subscription(session_factory, user)
    headers = auth_headers(user)

    changed = await client.patch(SUBSCRIPTION_URL, json={"tier": "pro", "billing": "monthly"}, headers=headers)
    assert changed.status_code == 200
    assert gateway.called("update_subscription") == [
        {"subscription_id": "sub_existing", "price_id": "price_pro_monthly"}
    ]

    canceled = await client.delete(SUBSCRIPTION_URL, headers=headers)
    assert canceled.status_code == 200
    assert canceled.json()["message"] == "Subscription cancellation requested"
    assert gateway.called("cancel_subscription") == [{"subscription_id": "sub_existing"}]

    # The row changes only when the provider's webhook arrives
    async with session_factory() as session:
        subscription = await session.scalar(select(Subscription))
        assert subscription.status == "ACTIVE"


async def test_cancel_without_subscription(client, make_user):
    user = await make_user()

    response = await client.delete(SUBSCRIPTION_URL, headers=auth_headers(user))

    assert response.status_code == 404
    assert response.json()["error"] == "No active subscription"
