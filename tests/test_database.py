import pytest
from sqlalchemy import func, select

from marketplace import database
from marketplace.database import dependencies
from marketplace.database.models import User


async def _count_users(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count(User.id)))


def test_get_db_is_the_exported_session_dependency():
    assert database.get_db is dependencies.get_db
    assert sorted(database.__all__) == ["Base", "close_db", "get_db", "init_db"]


async def test_get_db_commits_when_the_request_succeeds(session_factory, monkeypatch):
    monkeypatch.setattr(dependencies, "get_session_factory", lambda: session_factory)
    provider = dependencies.get_db()

    session = await provider.__anext__()
    session.add(User(email="kai@example.com", username="kai", name="Kai", user_type="COLLECTOR"))
    with pytest.raises(StopAsyncIteration):
        await provider.__anext__()

    assert await _count_users(session_factory) == 1


async def test_get_db_rolls_back_when_the_request_fails(session_factory, monkeypatch):
    monkeypatch.setattr(dependencies, "get_session_factory", lambda: session_factory)
    provider = dependencies.get_db()

    session = await provider.__anext__()
    session.add(User(email="kai@example.com", username="kai", name="Kai", user_type="COLLECTOR"))
    await session.flush()
    with pytest.raises(RuntimeError):
        await provider.athrow(RuntimeError("handler failed"))

    assert await _count_users(session_factory) == 0
