from sqlalchemy import select

from marketplace.database.models import Purchase, Tip, User
from tests.conftest import auth_headers

INTENT_URL = "/api/payments/create-payment-intent"


async def purchases(session_factory) -> list[Purchase]:
    async with session_factory() as session:
        return list((await session.scalars(select(Purchase))).all())


async def test_license_intent_at_stored_price(client, make_user, make_video, session_factory, gateway):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)

    response = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": video.id, "licenseType": "personal", "amount": 9.99},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["paymentIntentId"] == "pi_test_2"
    assert body["clientSecret"] == "pi_test_2_secret"

    [call] = gateway.called("create_video_license_payment")
    assert call["amount"] == 9.99
    assert call["license_type"] == "PERSONAL"
    assert call["metadata"]["userId"] == buyer.id
    assert call["metadata"]["creatorId"] == creator.id

    [purchase] = await purchases(session_factory)
    assert purchase.status == "PENDING"
    assert purchase.license_type == "PERSONAL"
    assert purchase.currency == "USD"
    assert purchase.stripe_payment_id == "pi_test_2"

    async with session_factory() as session:
        stored = await session.get(User, buyer.id)
        assert stored.stripe_customer_id == "cus_test_1"


async def test_license_intent_rejects_mismatched_amount(client, make_user, make_video, session_factory, gateway):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)

    response = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": video.id, "licenseType": "PERSONAL", "amount": 8.00},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Price mismatch"
    assert await purchases(session_factory) == []
    assert gateway.calls == []


async def test_license_intent_within_tolerance(client, make_user, make_video):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)

    response = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": video.id, "licenseType": "PERSONAL", "amount": 9.995},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 200


async def test_license_not_offered(client, make_user, make_video):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator, extended_license=None)

    response = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": video.id, "licenseType": "EXTENDED", "amount": 99.0},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "This license type is not available for purchase"


async def test_already_owned_license_is_rejected(client, make_user, make_video, session_factory, gateway):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)
    async with session_factory() as session:
        session.add(Purchase(
            user_id=buyer.id,
            video_id=video.id,
            license_type="PERSONAL",
            amount=9.99,
            currency="USD",
            stripe_payment_id="pi_previous",
            status="COMPLETED",
        ))
        await session.commit()

    response = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": video.id, "licenseType": "PERSONAL", "amount": 9.99},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "You already own this license"
    assert gateway.called("create_video_license_payment") == []


async def test_unknown_video_and_license_type(client, make_user, make_video):
    creator = await make_user("CREATOR")
    buyer = await make_user()
    video = await make_video(creator)

    missing = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": "nope", "licenseType": "PERSONAL", "amount": 9.99},
        headers=auth_headers(buyer),
    )
    assert missing.status_code == 404
    assert missing.json()["error"] == "Video not found"

    bad_license = await client.post(
        INTENT_URL,
        json={"type": "video_license", "videoId": video.id, "licenseType": "lifetime", "amount": 9.99},
        headers=auth_headers(buyer),
    )
    assert bad_license.status_code == 400
    assert bad_license.json()["error"] == "Invalid license type"


async def test_payment_intent_request_validation(client, make_user):
    buyer = await make_user()
    headers = auth_headers(buyer)

    missing = await client.post(INTENT_URL, json={"type": "tip"}, headers=headers)
    assert missing.json() == {"error": "Missing required fields", "status_code": 400}

    invalid = await client.post(INTENT_URL, json={"type": "refund", "amount": 5}, headers=headers)
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Invalid payment type"

    no_video = await client.post(INTENT_URL, json={"type": "video_license", "amount": 5}, headers=headers)
    assert no_video.json()["error"] == "Missing videoId or licenseType for video license purchase"


async def test_tip_creates_pending_tip(client, make_user, session_factory, gateway):
    creator = await make_user("CREATOR")
    fan = await make_user()

    response = await client.post(
        INTENT_URL,
        json={"type": "tip", "creatorId": creator.id, "amount": 5, "message": "  Love the series!  "},
        headers=auth_headers(fan),
    )

    assert response.status_code == 200
    [call] = gateway.called("create_tip_payment")
    assert call["creator_id"] == creator.id
    assert call["amount"] == 5

    async with session_factory() as session:
        [tip] = (await session.scalars(select(Tip))).all()
    assert tip.status == "PENDING"
    assert tip.sender_id == fan.id
    assert tip.message == "Love the series!"


async def test_cannot_tip_yourself(client, make_user, session_factory, gateway):
    creator = await make_user("CREATOR")

    response = await client.post(
        INTENT_URL,
        json={"type": "tip", "creatorId": creator.id, "amount": 5},
        headers=auth_headers(creator),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Cannot tip yourself"
    assert gateway.calls == []
    async with session_factory() as session:
        assert (await session.scalars(select(Tip))).all() == []


async def test_tip_requires_known_creator_and_positive_amount(client, make_user):
    creator = await make_user("CREATOR")
    fan = await make_user()
    headers = auth_headers(fan)

    unknown = await client.post(INTENT_URL, json={"type": "tip", "creatorId": "ghost", "amount": 5}, headers=headers)
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "Creator not found"

    negative = await client.post(INTENT_URL, json={"type": "tip", "creatorId": creator.id, "amount": -3}, headers=headers)
    assert negative.status_code == 400
    assert negative.json()["error"] == "Tip amount must be greater than zero"


async def test_payment_intent_requires_session(client):
    response = await client.post(INTENT_URL, json={"type": "tip", "amount": 5, "creatorId": "x"})

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
