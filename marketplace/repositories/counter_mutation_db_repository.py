"""
Counter mutation ledger - records which denormalized counter updates were applied.
"""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database.models.counter_mutation import CounterMutation


async def exists(session: AsyncSession, idempotency_key: str) -> bool:
    stmt = select(CounterMutation.idempotency_key).where(
        CounterMutation.idempotency_key == idempotency_key
    )
    result = await session.execute(stmt)
    return result.first() is not None


async def claim(session: AsyncSession, idempotency_key: str) -> bool:
    """
    Record a counter mutation key inside the caller's transaction.

    Returns:
        True if the key was new and the mutation should be applied,
        False if it was applied before
    """
    if await exists(session, idempotency_key):
        return False
    try:
        async with session.begin_nested():
            session.add(CounterMutation(idempotency_key=idempotency_key))
            await session.flush()
    except IntegrityError:
        return False
    return True
