"""Database configuration and session management for the short link service.

This module provides SQLAlchemy async engine setup, the shared session
factory, and database lifecycle operations using PostgreSQL as the backend.

Flow Diagram — Store Operations
===============================
::
    ┌─────────────┐
    │  Store      │
    │  operation  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_session_│
    │ factory()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Open session │
    │ + transaction│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Execute &    │
    │ commit       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (context)    │
    └─────────────┘

How to Use
===========
**Step 1 — Initialize on startup**::
    await init_db()  # Creates tables

**Step 2 — Hand the factory to a store**::
    store = SQLAlchemyLinkStore(get_session_factory())

**Step 3 — Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- Each store operation opens its own short-lived session, so concurrent
  requests never share a session.
- Connection pooling is configured for production workloads (skipped for SQLite).
- Tables are created automatically on application startup.
- Engine is properly disposed on application shutdown.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine_for():  Builds an async engine for a database URL.
    get_session_factory():  FastAPI dependency returning the session factory.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortlinks.config import get_settings

__all__ = ["Base", "close_db", "create_engine_for", "get_session_factory", "init_db"]

settings = get_settings()


def create_engine_for(database_url: str, echo: bool = False) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


engine = create_engine_for(settings.DATABASE_URL, echo=(settings.APP_ENV == "development"))

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session


async def init_db() -> None:
    # Import models so metadata is populated before table creation.
    from shortlinks import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
