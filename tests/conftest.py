import hashlib
import hmac
import json
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

# Settings are read once on first import; point them at test values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTH_JWT_SECRET", "test-session-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_marketplace")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_marketplace")
os.environ.setdefault("TEMP_BASE_DIR", tempfile.mkdtemp(prefix="marketplace-temp-"))
os.environ.setdefault("LOG_TO_CONSOLE", "false")

import httpx
import jwt
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.api.deps import (
    get_app_settings,
    get_media_service,
    get_payment_gateway,
    get_storage_service,
    get_temp_file_manager,
)
from marketplace.core.exceptions import MediaProcessingException
from marketplace.database.base import Base, utcnow
from marketplace.database.dependencies import get_db, get_db_session_factory
from marketplace.database.models import Creator, User, Video
from marketplace.main import app
from marketplace.services.media_service import MediaService, VideoMetadata
from marketplace.services.payment_gateway import StripeGateway
from marketplace.services.storage_service import GCSStorage
from marketplace.services.temp_file_manager import TempFileManager


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class FakeGateway(StripeGateway):
    """Records provider calls instead of making them; webhook verification is real."""

    def __init__(self, webhook_secret: str):
        super().__init__(api_key="sk_test_marketplace", webhook_secret=webhook_secret)
        self.calls: list[tuple[str, dict]] = []
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_test_{self._counter}"

    def called(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def create_customer(self, email, name, user_id):
        self.calls.append(("create_customer", {"email": email, "name": name, "user_id": user_id}))
        return {"id": self._next_id("cus")}

    async def create_video_license_payment(self, video_id, license_type, amount, customer_id, metadata=None):
        self.calls.append(("create_video_license_payment", {
            "video_id": video_id, "license_type": license_type, "amount": amount,
            "customer_id": customer_id, "metadata": metadata,
        }))
        intent_id = self._next_id("pi")
        return {"id": intent_id, "client_secret": f"{intent_id}_secret"}

    async def create_tip_payment(self, creator_id, user_id, amount, customer_id, message=None):
        self.calls.append(("create_tip_payment", {
            "creator_id": creator_id, "user_id": user_id, "amount": amount,
            "customer_id": customer_id, "message": message,
        }))
        intent_id = self._next_id("pi")
        return {"id": intent_id, "client_secret": f"{intent_id}_secret"}

    async def create_subscription_checkout(self, customer_id, price_id, success_url, cancel_url, metadata=None):
        self.calls.append(("create_subscription_checkout", {
            "customer_id": customer_id, "price_id": price_id,
            "success_url": success_url, "cancel_url": cancel_url, "metadata": metadata,
        }))
        session_id = self._next_id("cs")
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    async def update_subscription(self, subscription_id, price_id):
        self.calls.append(("update_subscription", {"subscription_id": subscription_id, "price_id": price_id}))
        return {"id": subscription_id}

    async def cancel_subscription(self, subscription_id):
        self.calls.append(("cancel_subscription", {"subscription_id": subscription_id}))
        return {"id": subscription_id, "status": "canceled"}


class FakeStorage(GCSStorage):
    """Keeps uploaded objects in a dict."""

    def __init__(self, settings):
        super().__init__(settings, client=MagicMock())
        self.objects: dict[str, str] = {}
        self.deleted: list[str] = []

    async def upload_file(self, path: Path, key: str, content_type: str) -> str:
        self.objects[key] = content_type
        return self.public_url(key)

    async def upload_bytes(self, data: bytes, key: str, content_type: str) -> str:
        self.objects[key] = content_type
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None


class FakeMedia(MediaService):
    """Real upload validation; canned probe results and thumbnails."""

    def __init__(self, settings):
        super().__init__(settings)
        self.fail_thumbnail = False

    async def probe(self, path: Path) -> VideoMetadata:
        return VideoMetadata(
            duration=12.5,
            width=1920,
            height=1080,
            fps=29.97,
            bitrate=4_000_000,
            codec="h264",
            size=path.stat().st_size,
        )

    async def thumbnail(self, video_path: Path, output_path: Path) -> Path:
        if self.fail_thumbnail:
            raise MediaProcessingException("thumbnail", "Could not read frame 60")
        output_path.write_bytes(b"\xff\xd8\xff\xe0jpeg")
        return output_path


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return get_app_settings()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

@pytest.fixture
def gateway(settings):
    return FakeGateway(settings.stripe_webhook_secret)


@pytest.fixture
def storage(settings):
    return FakeStorage(settings)


@pytest.fixture
def media(settings):
    return FakeMedia(settings)


@pytest.fixture
def temp_files(tmp_path):
    return TempFileManager(tmp_path / "temp")


@pytest.fixture
async def client(session_factory, gateway, storage, media, temp_files):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_media_service] = lambda: media
    app.dependency_overrides[get_temp_file_manager] = lambda: temp_files

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Auth and data helpers
# ---------------------------------------------------------------------------

def make_token(user: User, secret: Optional[str] = None, expires_in: int = 3600, **claims) -> str:
    payload = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, secret or get_app_settings().auth_jwt_secret, algorithm="HS256")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


def sign_webhook(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a stripe-signature header the way the provider does."""
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def webhook_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode("utf-8")


@pytest.fixture
def post_webhook(client, settings):
    async def post(event_type: str, obj: dict, signature: Optional[str] = None):
        payload = webhook_event(event_type, obj)
        headers = {"stripe-signature": signature or sign_webhook(payload, settings.stripe_webhook_secret)}
        return await client.post("/api/webhooks/stripe", content=payload, headers=headers)
    return post


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    async def make(user_type: str = "COLLECTOR", username: Optional[str] = None, **fields) -> User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        async with session_factory() as session:
            user = User(
                email=f"{username}@example.com",
                username=username,
                name=fields.pop("name", username.title()),
                user_type=user_type,
                **fields,
            )
            session.add(user)
            if user_type == "CREATOR":
                session.add(Creator(user=user, specialties=[]))
            await session.commit()
            return user

    return make


@pytest.fixture
def make_video(session_factory):
    counter = {"n": 0}

    async def make(creator: User, **fields) -> Video:
        counter["n"] += 1
        values = {
            "title": f"Neon skyline {counter['n']}",
            "description": "Drone flight over a rainy city at night",
            "video_url": f"https://storage.googleapis.com/bucket/videos/{counter['n']}.mp4",
            "thumbnail_url": f"https://storage.googleapis.com/bucket/thumbnails/{counter['n']}.jpg",
            "ai_model": "Sora",
            "prompts": ["rainy neon city"],
            "tags": ["city", "night"],
            "category": "CINEMATIC",
            "style": "FUTURISTIC",
            "personal_license": 9.99,
            "commercial_license": 49.99,
            "status": "PUBLISHED",
            "created_at": utcnow(),
        }
        values.update(fields)
        async with session_factory() as session:
            video = Video(creator_id=creator.id, **values)
            session.add(video)
            await session.commit()
            return video

    return make
