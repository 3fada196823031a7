"""Link persistence behind a narrow store interface.

This module defines the operations the engine needs from persistent storage
and implements them on SQLAlchemy's asyncio ORM. Every operation runs in its
own session and transaction, so the store is safe to share between
concurrent requests and the engine itself stays stateless.

Operation Overview
==================
::
    find(code)                 ─► Link | None
    is_taken(code)             ─► bool (live or retired)
    create_if_absent(code, …)  ─► Link | ConflictError
    increment_clicks(code, …)  ─► new count | NotFoundError   (single UPDATE)
    delete_if_owner(code, id)  ─► rows affected (0 or 1)      (single DELETE)
    list_by_owner(id)          ─► [Link] newest first
    list_click_events(code)    ─► [ClickEvent] newest first

Key Behaviours
===============
- Uniqueness is enforced by the database (UNIQUE on links.code); the store
  turns the resulting IntegrityError into ConflictError.
- The click counter is incremented by the database, never read-modify-write,
  so concurrent resolutions cannot lose updates. Passing ``link_id`` pins
  the increment to that row; a code since reallocated to another link
  matches nothing.
- Deletion is conditional on the owner in the same statement.
- Any other SQLAlchemyError surfaces as StoreError with no driver detail.
"""

import datetime
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from sqlalchemy import delete, exists, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks.errors import ConflictError, NotFoundError, StoreError
from shortlinks.models import ClickEvent, Link, RetiredCode

__all__ = ["LinkStore", "SQLAlchemyLinkStore"]

logger = logging.getLogger("shortlinks.store")


class LinkStore(Protocol):
    """Operations the engine consumes from persistent storage."""

    async def find(self, code: str) -> Link | None: ...

    async def is_taken(self, code: str) -> bool: ...

    async def create_if_absent(
        self,
        code: str,
        *,
        target_url: str,
        owner_id: str | None,
        created_at: datetime.datetime,
    ) -> Link: ...

    async def increment_clicks(
        self,
        code: str,
        *,
        clicked_at: datetime.datetime,
        record_event: bool = True,
        link_id: int | None = None,
    ) -> int: ...

    async def delete_if_owner(self, code: str, owner_id: str, *, retire: bool = False) -> int: ...

    async def list_by_owner(self, owner_id: str) -> list[Link]: ...

    async def list_click_events(self, code: str, limit: int = 50) -> list[ClickEvent]: ...


class SQLAlchemyLinkStore:
    """LinkStore implementation on an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error(f"Store operation failed: {exc}")
            raise StoreError() from exc

    async def find(self, code: str) -> Link | None:
        async with self._session() as session:
            result = await session.execute(select(Link).where(Link.code == code))
            return result.scalar_one_or_none()

    async def is_taken(self, code: str) -> bool:
        async with self._session() as session:
            return await self._is_taken(session, code)

    async def create_if_absent(
        self,
        code: str,
        *,
        target_url: str,
        owner_id: str | None,
        created_at: datetime.datetime,
    ) -> Link:
        async with self._session() as session:
            if await session.scalar(select(exists().where(RetiredCode.code == code))):
                raise ConflictError(code)

            link = Link(
                code=code,
                target_url=target_url,
                owner_id=owner_id,
                click_count=0,
                created_at=created_at,
            )
            session.add(link)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(code) from exc
            await session.refresh(link)
            return link

    async def increment_clicks(
        self,
        code: str,
        *,
        clicked_at: datetime.datetime,
        record_event: bool = True,
        link_id: int | None = None,
    ) -> int:
        conditions = [Link.code == code]
        if link_id is not None:
            conditions.append(Link.id == link_id)

        async with self._session() as session:
            result = await session.execute(
                update(Link)
                .where(*conditions)
                .values(click_count=Link.click_count + 1, last_clicked_at=clicked_at)
                .returning(Link.id, Link.click_count)
                .execution_options(synchronize_session=False)
            )
            row = result.first()
            if row is None:
                await session.rollback()
                raise NotFoundError()

            row_id, click_count = row
            if record_event:
                await session.execute(insert(ClickEvent).values(link_id=row_id, clicked_at=clicked_at))
            await session.commit()
            return click_count

    async def delete_if_owner(self, code: str, owner_id: str, *, retire: bool = False) -> int:
        async with self._session() as session:
            link_id = await session.scalar(
                select(Link.id).where(Link.code == code, Link.owner_id == owner_id)
            )
            if link_id is None:
                return 0

            # Explicit so SQLite without foreign key enforcement behaves like PostgreSQL.
            await session.execute(delete(ClickEvent).where(ClickEvent.link_id == link_id))
            result = await session.execute(
                delete(Link).where(Link.id == link_id, Link.owner_id == owner_id)
            )
            deleted = result.rowcount or 0
            if deleted and retire:
                session.add(RetiredCode(code=code, retired_at=datetime.datetime.now(datetime.UTC)))
            await session.commit()
            return deleted

    async def list_by_owner(self, owner_id: str) -> list[Link]:
        async with self._session() as session:
            result = await session.execute(
                select(Link).where(Link.owner_id == owner_id).order_by(Link.created_at.desc(), Link.id.desc())
            )
            return list(result.scalars().all())

    async def list_click_events(self, code: str, limit: int = 50) -> list[ClickEvent]:
        async with self._session() as session:
            result = await session.execute(
                select(ClickEvent)
                .join(Link, Link.id == ClickEvent.link_id)
                .where(Link.code == code)
                .order_by(ClickEvent.clicked_at.desc(), ClickEvent.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    @staticmethod
    async def _is_taken(session: AsyncSession, code: str) -> bool:
        live = await session.scalar(select(exists().where(Link.code == code)))
        if live:
            return True
        return bool(await session.scalar(select(exists().where(RetiredCode.code == code))))
