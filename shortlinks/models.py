"""SQLAlchemy ORM models for the short link service.

This module defines the database schema using SQLAlchemy declarative models
with the unique constraint the allocator relies on and the click event log
kept alongside the coarse counter.

Data Model Layout
=================
::
    links table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ code (VARCHAR(32) UNIQUE, INDEXED)
    ├─ target_url (TEXT NOT NULL)
    ├─ owner_id (VARCHAR(64) NULL, INDEXED)
    ├─ click_count (INTEGER DEFAULT 0)
    ├─ last_clicked_at (TIMESTAMPTZ NULL)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

    click_events table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ link_id (INTEGER FK links.id ON DELETE CASCADE, INDEXED)
    └─ clicked_at (TIMESTAMPTZ NOT NULL)

    retired_codes table
    ├─ code (VARCHAR(32) PRIMARY KEY)
    └─ retired_at (TIMESTAMPTZ NOT NULL)

Class Relationship Diagram
=========================
::
    Link 1 ──── * ClickEvent

    RetiredCode (standalone, only written when deleted codes
                 must not be handed out again)

How to Use
===========
**Step 1 — Import**::
    from shortlinks.models import Link

**Step 2 — Query links**::
    result = await session.execute(select(Link).where(Link.code == "abc123"))
    link = result.scalar_one_or_none()

**Step 3 — Atomic click increment**::
    await session.execute(
        update(Link).where(Link.code == "abc123").values(click_count=Link.click_count + 1)
    )

Key Behaviours
===============
- code is unique and indexed; a duplicate insert raises IntegrityError.
- target_url is stored exactly as submitted.
- click_count starts at 0 and is only ever incremented in the database.
- Deleting a link deletes its click events.

Classes:
    Link:  A short code bound to its target URL with click statistics.
    ClickEvent:  One successful resolution of a link.
    RetiredCode:  A deleted code withheld from reallocation.
"""

import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlinks.database import Base

__all__ = ["ClickEvent", "Link", "RetiredCode"]


class Link(Base):
    __tablename__ = "links"
    # Ids are never reused, so a cached link id cannot match a reallocated code.
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    owner_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    click_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_clicked_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, code='{self.code}', clicks={self.click_count})>"


class ClickEvent(Base):
    __tablename__ = "click_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    link_id: Mapped[int] = mapped_column(ForeignKey("links.id", ondelete="CASCADE"), index=True, nullable=False)
    clicked_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<ClickEvent(id={self.id}, link_id={self.link_id})>"


class RetiredCode(Base):
    __tablename__ = "retired_codes"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    retired_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
