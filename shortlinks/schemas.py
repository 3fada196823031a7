"""Pydantic schemas for request/response validation in the short link API.

This module defines Pydantic models for API input and output serialization,
ensuring type safety and automatic OpenAPI documentation generation.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    └─ url: str | None (stored verbatim; emptiness checked by the allocator)

    LinkResponse (Output)
    ├─ code: str
    ├─ short_url: str (computed)
    ├─ target_url: str
    ├─ owner_id: str | None
    ├─ click_count: int
    ├─ last_clicked_at: datetime | None
    └─ created_at: datetime

    CreateLinkResponse (Output)
    ├─ ok, code, short_url
    └─ link: LinkResponse

    LinkList (Output)
    └─ links: list[LinkResponse]

    ClickEventList (Output)
    ├─ code: str
    └─ events: list[ClickEventResponse]

    HealthResponse (Output)
    ├─ status, database, cache

How to Use
===========
**Step 1 — Input parsing**::
    @router.post("/api/links")
    async def create_link(payload: LinkCreate): ...

**Step 2 — Response serialization**::
    return LinkResponse.from_link(link, settings.BASE_URL)

Key Behaviours
===============
- The target URL is not validated at creation; it is checked at resolution.
- All datetime fields are timezone-aware where the database preserves it.
- Output models are configured for ORM attribute mapping.

Classes:
    LinkCreate:  Input schema for link creation.
    LinkResponse:  Output schema for a single link.
    CreateLinkResponse:  Output schema for a created link.
    LinkList:  Output schema for the owner's links.
    DeleteResponse:  Output schema for deletions.
    ClickEventResponse / ClickEventList:  Output schemas for the click log.
    Identity / MeResponse:  The caller identity as seen by the engine.
    HealthResponse:  Output schema for health checks.
    CachedLinkTarget:  Redis cache payload.
"""

import datetime

from pydantic import BaseModel, Field

from shortlinks.enums import HealthStatus

__all__ = [
    "CachedLinkTarget",
    "ClickEventList",
    "ClickEventResponse",
    "CreateLinkResponse",
    "DeleteResponse",
    "HealthResponse",
    "Identity",
    "LinkCreate",
    "LinkList",
    "LinkResponse",
    "MeResponse",
]


class LinkCreate(BaseModel):
    url: str | None = Field(None, description="Destination URL, e.g. 'example.com/page'")


class LinkResponse(BaseModel):
    code: str
    short_url: str
    target_url: str
    owner_id: str | None
    click_count: int
    last_clicked_at: datetime.datetime | None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_link(cls, link, base_url: str) -> "LinkResponse":
        return cls(
            code=link.code,
            short_url=f"{base_url}/{link.code}",
            target_url=link.target_url,
            owner_id=link.owner_id,
            click_count=link.click_count,
            last_clicked_at=link.last_clicked_at,
            created_at=link.created_at,
        )


class CreateLinkResponse(BaseModel):
    ok: bool = True
    code: str
    short_url: str
    link: LinkResponse


class LinkList(BaseModel):
    ok: bool = True
    links: list[LinkResponse]


class DeleteResponse(BaseModel):
    ok: bool = True
    message: str = "Deleted"
    deleted: int = Field(..., description="Rows removed by this call; 0 if a concurrent delete won.")


class ClickEventResponse(BaseModel):
    clicked_at: datetime.datetime

    model_config = {"from_attributes": True}


class ClickEventList(BaseModel):
    code: str
    events: list[ClickEventResponse]


class Identity(BaseModel):
    """Authenticated caller, resolved once at the HTTP boundary."""

    id: str
    email: str | None = None


class MeResponse(BaseModel):
    user: Identity | None


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class CachedLinkTarget(BaseModel):
    """Redis cache payload for a resolved link.

    ``link_id`` pins the entry to one row, so a code that was deleted and
    reallocated never serves the previous target.
    """

    code: str
    link_id: int
    target_url: str
