"""
Database package.
Provides async SQLAlchemy engine, session management, and ORM models.
"""
from marketplace.database.base import Base
from marketplace.database.session import init_db, close_db
from marketplace.database.dependencies import get_db

__all__ = [
    "Base",
    "init_db",
    "close_db",
    "get_db",
]
