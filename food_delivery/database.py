"""
Database Connection Module
Builds the SQLAlchemy async engine and session factory.

The engine is created on demand because DATABASE_URL is optional: without it
the persistence gateway runs in mock mode and no engine exists at all.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


# Base class for all our models
class Base(DeclarativeBase):
    pass


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    PostgreSQL gets a small pool; in-memory SQLite (tests) shares one
    connection so every session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.endswith("://"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(database_url, echo=echo, **kwargs)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
        pool_timeout=10,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new database sessions."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Objects remain accessible after commit
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables in database.
    Called once when the gateway first connects.
    """
    # Register models on Base.metadata
    from food_delivery import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def mask_url(database_url: Optional[str]) -> str:
    """Hide the password part of a connection URL for logging."""
    if not database_url:
        return "not set"
    scheme, sep, rest = database_url.partition("://")
    if "@" not in rest:
        return database_url
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}{sep}{user}:****@{host}"
