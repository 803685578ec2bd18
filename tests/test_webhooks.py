import time

from sqlalchemy import select

from marketplace.database.models import Creator, Purchase, Subscription, Tip, User, Video
from tests.conftest import sign_webhook, webhook_event


def license_intent(buyer, video, intent_id="pi_license_1", amount=999, license_type="PERSONAL"):
    return {
        "id": intent_id,
        "object": "payment_intent",
        "amount": amount,
        "currency": "usd",
        "metadata": {
            "type": "video_license",
            "videoId": video.id,
            "licenseType": license_type,
            "userId": buyer.id,
            "creatorId": video.creator_id,
        },
    }


def subscription_object(user, subscription_id="sub_1", status="active", tier="pro", customer="cus_sub"):
    now = int(time.time())
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "metadata": {"userId": user.id, "tier": tier},
        "items": {"data": [{
            "id": "si_1",
            "price": {"id": "price_pro_monthly"},
            "current_period_start": now,
            "current_period_end": now + 30 * 24 * 3600,
        }]},
    }


async def test_license_payment_completes_purchase_and_credits_creator(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)

    response = await post_webhook("payment_intent.succeeded", license_intent(buyer, video))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    async with session_factory() as session:
        [purchase] = (await session.scalars(select(Purchase))).all()
        assert purchase.status == "COMPLETED"
        assert purchase.amount == 9.99
        assert purchase.currency == "USD"

        stored_video = await session.get(Video, video.id)
        assert stored_video.purchases == 1
        assert stored_video.revenue == 9.99

        profile = await session.scalar(select(Creator).where(Creator.user_id == creator.id))
        assert profile.total_purchases == 1
        assert profile.total_earnings == 8.99
        assert profile.lifetime_revenue == 9.99


async def test_duplicate_delivery_applies_counters_once(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    intent = license_intent(buyer, video)

    first = await post_webhook("payment_intent.succeeded", intent)
    second = await post_webhook("payment_intent.succeeded", intent)

    assert first.status_code == second.status_code == 200
    async with session_factory() as session:
        assert len((await session.scalars(select(Purchase))).all()) == 1
        stored_video = await session.get(Video, video.id)
        assert stored_video.purchases == 1
        profile = await session.scalar(select(Creator).where(Creator.user_id == creator.id))
        assert profile.total_purchases == 1


async def test_pending_purchase_is_completed_in_place(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    async with session_factory() as session:
        session.add(Purchase(
            user_id=buyer.id, video_id=video.id, license_type="PERSONAL", amount=9.99,
            currency="USD", stripe_payment_id="pi_license_1", status="PENDING",
        ))
        await session.commit()

    await post_webhook("payment_intent.succeeded", license_intent(buyer, video))

    async with session_factory() as session:
        [purchase] = (await session.scalars(select(Purchase))).all()
        assert purchase.status == "COMPLETED"
        assert purchase.completed_at is not None


async def test_tip_payment_credits_net_amount(post_webhook, make_user, session_factory):
    creator = await make_user("CREATOR")
    fan = await make_user()
    intent = {
        "id": "pi_tip_1",
        "object": "payment_intent",
        "amount": 1000,
        "currency": "usd",
        "metadata": {"type": "tip", "creatorId": creator.id, "userId": fan.id, "message": "thanks"},
    }

    await post_webhook("payment_intent.succeeded", intent)
    await post_webhook("payment_intent.succeeded", intent)

    async with session_factory() as session:
        [tip] = (await session.scalars(select(Tip))).all()
        assert tip.status == "COMPLETED"
        assert tip.message == "thanks"
        profile = await session.scalar(select(Creator).where(Creator.user_id == creator.id))
        assert profile.total_earnings == 9.5
        assert profile.total_purchases == 0


async def test_failed_payment_marks_purchase_failed(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    async with session_factory() as session:
        session.add(Purchase(
            user_id=buyer.id, video_id=video.id, license_type="PERSONAL", amount=9.99,
            currency="USD", stripe_payment_id="pi_license_1", status="PENDING",
        ))
        await session.commit()

    await post_webhook("payment_intent.payment_failed", license_intent(buyer, video))

    async with session_factory() as session:
        [purchase] = (await session.scalars(select(Purchase))).all()
        assert purchase.status == "FAILED"


async def test_subscription_lifecycle(post_webhook, make_user, session_factory):
    user = await make_user()

    await post_webhook("customer.subscription.created", subscription_object(user))

    async with session_factory() as session:
        [subscription] = (await session.scalars(select(Subscription))).all()
        assert subscription.status == "ACTIVE"
        assert subscription.tier == "PRO"
        assert subscription.current_period_end is not None
        stored = await session.get(User, user.id)
        assert stored.subscription_tier == "PRO"
        assert stored.stripe_customer_id == "cus_sub"

    await post_webhook("customer.subscription.updated", subscription_object(user, status="past_due"))
    async with session_factory() as session:
        subscription = await session.scalar(select(Subscription))
        assert subscription.status == "PAST_DUE"

    await post_webhook("customer.subscription.deleted", subscription_object(user, status="canceled"))
    async with session_factory() as session:
        subscription = await session.scalar(select(Subscription))
        assert subscription.status == "CANCELED"
        stored = await session.get(User, user.id)
        assert stored.subscription_tier == "FREE"


async def test_unmapped_subscription_status_leaves_row_unchanged(post_webhook, make_user, session_factory):
    user = await make_user()
    await post_webhook("customer.subscription.created", subscription_object(user))

    await post_webhook("customer.subscription.updated", subscription_object(user, status="incomplete"))

    async with session_factory() as session:
        subscription = await session.scalar(select(Subscription))
        assert subscription.status == "ACTIVE"


async def test_invoice_failure_marks_subscription_past_due(post_webhook, make_user, session_factory):
    user = await make_user()
    await post_webhook("customer.subscription.created", subscription_object(user))

    await post_webhook("invoice.payment_failed", {"id": "in_1", "object": "invoice", "subscription": "sub_1"})

    async with session_factory() as session:
        subscription = await session.scalar(select(Subscription))
        assert subscription.status == "PAST_DUE"


async def test_bad_signature_is_rejected_without_writes(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    intent = license_intent(buyer, video)
    forged = sign_webhook(webhook_event("payment_intent.succeeded", intent), "whsec_someone_else")

    response = await post_webhook("payment_intent.succeeded", intent, signature=forged)

    assert response.status_code == 400
    assert response.json()["error"] == "Webhook signature verification failed"
    async with session_factory() as session:
        assert (await session.scalars(select(Purchase))).all() == []


async def test_missing_signature_header(client):
    response = await client.post("/api/webhooks/stripe", content=b"{}")

    assert response.status_code == 400
    assert response.json()["error"] == "Missing stripe-signature header"


async def test_handler_failure_is_still_acknowledged(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    intent = license_intent(buyer, video)
    del intent["amount"]

    response = await post_webhook("payment_intent.succeeded", intent)

    assert response.status_code == 200
    async with session_factory() as session:
        assert (await session.scalars(select(Purchase))).all() == []


async def test_unknown_event_types_are_acknowledged(post_webhook):
    response = await post_webhook("charge.refunded", {"id": "ch_1", "object": "charge"})

    assert response.status_code == 200
    assert response.json() == {"received": True}


async def test_subscription_checkout_links_customer(post_webhook, make_user, session_factory):
    user = await make_user()
    checkout = {
        "id": "cs_1",
        "object": "checkout.session",
        "customer": "cus_checkout",
        "metadata": {"type": "subscription", "userId": user.id, "tier": "premium"},
    }

    response = await post_webhook("checkout.session.completed", checkout)

    assert response.status_code == 200
    async with session_factory() as session:
        stored = await session.get(User, user.id)
        assert stored.stripe_customer_id == "cus_checkout"


async def test_non_subscription_checkout_is_ignored(post_webhook, make_user, session_factory):
    user = await make_user()
    checkout = {"id": "cs_2", "object": "checkout.session", "customer": "cus_other", "metadata": {"userId": user.id}}

    await post_webhook("checkout.session.completed", checkout)

    async with session_factory() as session:
        stored = await session.get(User, user.id)
        assert stored.stripe_customer_id is None


async def test_failed_tip_payment_marks_tip_failed(post_webhook, make_user, session_factory):
    creator = await make_user("CREATOR")
    fan = await make_user()
    async with session_factory() as session:
        session.add(Tip(
            sender_id=fan.id, creator_id=creator.id, amount=5.0, currency="USD",
            stripe_payment_id="pi_tip_2", status="PENDING",
        ))
        await session.commit()

    await post_webhook("payment_intent.payment_failed", {
        "id": "pi_tip_2",
        "object": "payment_intent",
        "amount": 500,
        "metadata": {"type": "tip", "creatorId": creator.id, "userId": fan.id},
    })

    async with session_factory() as session:
        [tip] = (await session.scalars(select(Tip))).all()
        assert tip.status == "FAILED"
        profile = await session.scalar(select(Creator).where(Creator.user_id == creator.id))
        assert profile.total_earnings == 0


async def test_second_intent_for_owned_license_is_not_recorded(post_webhook, make_user, make_video, session_factory):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    await post_webhook("payment_intent.succeeded", license_intent(buyer, video, intent_id="pi_first"))

    response = await post_webhook("payment_intent.succeeded", license_intent(buyer, video, intent_id="pi_second"))

    assert response.status_code == 200
    async with session_factory() as session:
        purchases = (await session.scalars(select(Purchase))).all()
        assert [p.stripe_payment_id for p in purchases] == ["pi_first"]
        stored_video = await session.get(Video, video.id)
        assert stored_video.purchases == 1
        assert stored_video.revenue == 9.99
        profile = await session.scalar(select(Creator).where(Creator.user_id == creator.id))
        assert profile.total_purchases == 1
        assert profile.total_earnings == 8.99
