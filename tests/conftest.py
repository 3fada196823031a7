"""Shared pytest fixtures for store, service and API tests.

The suite runs against SQLite (aiosqlite) with the Redis cache disabled, so
no external services are needed.
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["BASE_URL"] = "http://test"

import random
from collections.abc import Callable, Iterable
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks import models  # noqa: F401
from shortlinks.auth import create_access_token
from shortlinks.codegen import ShortCodeGenerator
from shortlinks.config import Settings, get_settings
from shortlinks.database import Base, create_engine_for, get_session_factory
from shortlinks.link_service import LinkService
from shortlinks.main import app
from shortlinks.store import SQLAlchemyLinkStore


class ScriptedGenerator:
    """Code generator that hands out a fixed sequence of candidates."""

    keyspace_size = 0

    def __init__(self, codes: Iterable[str]) -> None:
        self._codes = iter(codes)

    def generate(self) -> str:
        return next(self._codes)


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'shortlinks.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SQLAlchemyLinkStore:
    return SQLAlchemyLinkStore(session_factory)


@pytest.fixture
def make_service(store: SQLAlchemyLinkStore, settings: Settings) -> Callable[..., LinkService]:
    """Build a LinkService with policy overrides, a seeded generator and no cache."""

    def _make(generator=None, cache=None, **overrides) -> LinkService:
        service_settings = settings.model_copy(update=overrides)
        if generator is None:
            generator = ShortCodeGenerator(
                length=service_settings.SHORT_CODE_LENGTH,
                alphabet=service_settings.SHORT_CODE_ALPHABET,
                rng=random.Random(1234),
            )
        return LinkService(store, settings=service_settings, generator=generator, cache=cache)

    return _make


@pytest.fixture
def service(make_service: Callable[..., LinkService]) -> LinkService:
    return make_service()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user_id: str, email: str | None = None) -> dict[str, str]:
    token = create_access_token(user_id, email or f"{user_id}@example.com")
    return {"Authorization": f"Bearer {token}"}
