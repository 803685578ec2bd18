from sqlalchemy import select

from marketplace.database.models import User
from tests.conftest import make_token


class Claims:
    """Stand-in for a user that exists only in the auth provider."""

    def __init__(self, id, email, name=None):
        self.id = id
        self.email = email
        self.name = name


async def test_first_request_creates_the_account(client, session_factory):
    newcomer = Claims("9f2c41aa77e04b1d", "maya@example.com", "Maya")
    token = make_token(newcomer, user_type="creator")

    response = await client.get("/api/library/collections", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    async with session_factory() as session:
        user = await session.get(User, newcomer.id)
    assert user.username == "maya"
    assert user.user_type == "CREATOR"
    assert user.display_name == "Maya"


async def test_taken_username_gets_a_suffix(client, make_user, session_factory):
    await make_user(username="maya")
    newcomer = Claims("9f2c41aa77e04b1d", "maya@other.example.com")
    token = make_token(newcomer)

    await client.get("/api/library/collections", headers={"Authorization": f"Bearer {token}"})

    async with session_factory() as session:
        user = await session.scalar(select(User).where(User.id == newcomer.id))
    assert user.username == "maya_9f2c41aa"
    assert user.user_type == "BROWSER"


async def test_expired_token(client, make_user):
    user = await make_user()
    token = make_token(user, expires_in=-60)

    response = await client.get("/api/library/collections", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"] == "Session expired"


async def test_token_signed_with_another_secret(client, make_user):
    user = await make_user()
    token = make_token(user, secret="not-the-session-secret")

    response = await client.get("/api/videos/anything", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
