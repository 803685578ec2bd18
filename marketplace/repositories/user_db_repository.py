"""
User database repository - CRUD operations for the users table.
"""
from typing import Optional
from sqlalchemy import select, update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.user import User


async def create(
    session: AsyncSession,
    id: str,
    email: str,
    username: str,
    name: Optional[str] = None,
    image: Optional[str] = None,
    user_type: str = "BROWSER",
) -> User:
    """
    Create a user from session claims.

    Raises:
        IntegrityError: If the email or username is already taken
    """
    user = User(
        id=id,
        email=email,
        username=username,
        name=name,
        display_name=name,
        image=image,
        user_type=user_type,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def get_by_id(session: AsyncSession, id: str) -> Optional[User]:
    return await session.get(User, id)


async def get_by_username(session: AsyncSession, username: str) -> Optional[User]:
    stmt = select(User).where(User.username == username)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_stripe_customer_id(session: AsyncSession, customer_id: str) -> Optional[User]:
    stmt = select(User).where(User.stripe_customer_id == customer_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def username_exists(session: AsyncSession, username: str) -> bool:
    stmt = select(User.id).where(User.username == username)
    result = await session.execute(stmt)
    return result.first() is not None


async def update(session: AsyncSession, id: str, **fields) -> Optional[User]:
    """
    Update a user record.

    Args:
        session: Async database session
        id: User ID
        **fields: Columns to set (e.g., subscription_tier="PRO")

    Returns:
        Updated User or None if not found
    """
    user = await session.get(User, id)
    if user is None:
        return None
    for key, value in fields.items():
        setattr(user, key, value)
    await session.flush()
    return user


async def set_stripe_customer_id(session: AsyncSession, id: str, customer_id: str) -> None:
    stmt = sql_update(User).where(User.id == id).values(stripe_customer_id=customer_id)
    await session.execute(stmt)
