"""
Dependency injection for FastAPI endpoints.
Provides singleton clients, per-request services and the signed-in user.
"""
import logging
from functools import lru_cache
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.config import Settings, get_settings
from marketplace.core.exceptions import AuthenticationException
from marketplace.core.logging import set_user_id
from marketplace.database.dependencies import get_db, get_db_session_factory
from marketplace.database.models.enums import UserType
from marketplace.database.models.user import User
from marketplace.repositories import user_db_repository
from marketplace.services.media_service import MediaService
from marketplace.services.payment_gateway import StripeGateway
from marketplace.services.storage_service import GCSStorage
from marketplace.services.temp_file_manager import TempFileManager
from marketplace.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

# Global singleton instances
_payment_gateway: Optional[StripeGateway] = None
_storage: Optional[GCSStorage] = None

_bearer = HTTPBearer(auto_error=False)


@lru_cache()
def get_app_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance
    """
    return get_settings()


def get_payment_gateway() -> StripeGateway:
    """
    Get the Stripe gateway singleton.

    Returns:
        StripeGateway instance
    """
    global _payment_gateway
    if _payment_gateway is None:
        settings = get_app_settings()
        _payment_gateway = StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.stripe_currency,
            max_network_retries=settings.stripe_max_network_retries,
        )
    return _payment_gateway


def get_storage_service() -> GCSStorage:
    """
    Get the object storage singleton. The GCS client is created on first use.

    Returns:
        GCSStorage instance
    """
    global _storage
    if _storage is None:
        _storage = GCSStorage(get_app_settings())
    return _storage


def get_media_service() -> MediaService:
    return MediaService(get_app_settings())


def get_temp_file_manager() -> TempFileManager:
    return TempFileManager(get_app_settings().temp_base_dir)


def get_webhook_service(
    gateway: StripeGateway = Depends(get_payment_gateway),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
) -> WebhookService:
    return WebhookService(gateway, session_factory, get_app_settings())


# Auth

def decode_session_token(token: str, settings: Settings) -> dict:
    """
    Verify a session token issued by the auth provider.

    Raises:
        AuthenticationException: Expired, malformed or wrongly signed token
    """
    try:
        claims = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationException("Session expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid session token: {e}")
        raise AuthenticationException()
    return claims


async def _unique_username(session: AsyncSession, claims: dict) -> str:
    base = claims.get("username") or claims["email"].split("@")[0]
    if not await user_db_repository.username_exists(session, base):
        return base
    return f"{base}_{claims['sub'][:8]}"


async def resolve_user(session: AsyncSession, claims: dict) -> User:
    """Load the user for verified claims, creating the row on first sign-in."""
    user = await user_db_repository.get_by_id(session, claims["sub"])
    if user is not None:
        return user

    if not claims.get("email"):
        raise AuthenticationException("Session is missing an email claim")

    user_type = str(claims.get("user_type") or UserType.BROWSER.value).upper()
    if user_type not in UserType.__members__:
        user_type = UserType.BROWSER.value

    try:
        async with session.begin_nested():
            user = await user_db_repository.create(
                session,
                id=claims["sub"],
                email=claims["email"],
                username=await _unique_username(session, claims),
                name=claims.get("name"),
                image=claims.get("picture") or claims.get("image"),
                user_type=user_type,
            )
    except IntegrityError:
        # Concurrent first requests for the same account
        user = await user_db_repository.get_by_id(session, claims["sub"])
        if user is None:
            raise AuthenticationException("Could not create account for session")
        return user

    logger.info(f"Created user {user.id} ({user.username}) on first sign-in")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """The signed-in user, or None for anonymous requests."""
    if credentials is None:
        return None
    claims = decode_session_token(credentials.credentials, get_app_settings())
    user = await resolve_user(session, claims)
    set_user_id(user.id)
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """The signed-in user; 401 when the request carries no session."""
    if user is None:
        raise AuthenticationException()
    return user
