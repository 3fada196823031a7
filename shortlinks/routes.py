"""FastAPI route definitions for the short link REST API.

This module provides all HTTP endpoints with dependency injection and
response serialization. Errors raised by the service are ``ShortLinkError``
subclasses and are rendered by the handler registered in ``shortlinks.main``.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    GET    /api/me
        └─ MeResponse (200)

    POST   /api/links
        ├─ LinkCreate (request body)
        └─ CreateLinkResponse (201) or 400/401/500

    GET    /api/links
        └─ LinkList (200) or 401

    DELETE /api/links/:code
        └─ DeleteResponse (200) or 401/403/404

    GET    /api/stats/:code
        └─ LinkResponse (200) or 404

    GET    /api/stats/:code/clicks
        └─ ClickEventList (200) or 404

    GET    /:code
        └─ 307 Redirect or 404

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Resolve     │
    │ identity    │
    │ (JWT)       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ LinkService │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Call service│──► ShortLinkError ──► JSON error
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serialize   │
    │ (Pydantic)  │
    └─────────────┘

Key Behaviours
===============
- The caller identity is resolved once here and passed to the service as
  a plain value.
- An unknown code and a code whose target is unusable both answer 404 with
  the same body.
- The click is committed before the 307 response is produced.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from shortlinks.auth import get_current_identity
from shortlinks.dependencies import RequestContext, get_link_service, get_request_context
from shortlinks.enums import HealthStatus
from shortlinks.link_service import LinkService
from shortlinks.schemas import (
    ClickEventList,
    ClickEventResponse,
    CreateLinkResponse,
    DeleteResponse,
    HealthResponse,
    Identity,
    LinkCreate,
    LinkList,
    LinkResponse,
    MeResponse,
)

__all__ = ["router"]

router = APIRouter()


def _owner_id(identity: Identity | None) -> str | None:
    return identity.id if identity is not None else None


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.DISABLED

    try:
        async with ctx.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    if ctx.cache is not None:
        try:
            await ctx.cache.ping()
            cache_status = HealthStatus.HEALTHY
        except Exception as e:
            ctx.logger.error(f"Cache health check failed: {e}")
            cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is not HealthStatus.UNHEALTHY
        else HealthStatus.UNHEALTHY
    )
    ctx.logger.debug(f"Health check completed: {status.value}")
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.get("/api/me", response_model=MeResponse, tags=["identity"])
async def who_am_i(identity: Identity | None = Depends(get_current_identity)) -> MeResponse:
    return MeResponse(user=identity)


@router.post("/api/links", response_model=CreateLinkResponse, status_code=201, tags=["links"])
async def create_link(
    payload: LinkCreate,
    ctx: RequestContext = Depends(get_request_context),
    identity: Identity | None = Depends(get_current_identity),
    service: LinkService = Depends(get_link_service),
) -> CreateLinkResponse:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Link creation requested: {payload.url!r}",
        extra={"operation": "create_link", "owner_id": _owner_id(identity)},
    )

    created = await service.create_link(payload.url, _owner_id(identity))

    return CreateLinkResponse(
        code=created.code,
        short_url=created.short_url,
        link=LinkResponse.from_link(created.link, ctx.settings.BASE_URL),
    )


@router.get("/api/links", response_model=LinkList, tags=["links"])
async def list_links(
    ctx: RequestContext = Depends(get_request_context),
    identity: Identity | None = Depends(get_current_identity),
    service: LinkService = Depends(get_link_service),
) -> LinkList:
    links = await service.list_links(_owner_id(identity))
    return LinkList(links=[LinkResponse.from_link(link, ctx.settings.BASE_URL) for link in links])


@router.delete("/api/links/{code}", response_model=DeleteResponse, tags=["links"])
async def delete_link(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    identity: Identity | None = Depends(get_current_identity),
    service: LinkService = Depends(get_link_service),
) -> DeleteResponse:
    ctx.add_tag("link_deletion")
    deleted = await service.delete_link(code, _owner_id(identity))
    return DeleteResponse(deleted=deleted)


@router.get("/api/stats/{code}", response_model=LinkResponse, tags=["links"])
async def get_stats(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    link = await service.get_link(code)
    return LinkResponse.from_link(link, ctx.settings.BASE_URL)


@router.get("/api/stats/{code}/clicks", response_model=ClickEventList, tags=["links"])
async def get_click_events(
    code: str,
    limit: int = Query(50, ge=1, le=500),
    service: LinkService = Depends(get_link_service),
) -> ClickEventList:
    events = await service.list_click_events(code, limit=limit)
    return ClickEventList(
        code=code,
        events=[ClickEventResponse.model_validate(event) for event in events],
    )


@router.get("/{code}", tags=["redirect"])
async def redirect_to_target(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")
    target = await service.resolve(code)

    ctx.logger.info(
        f"Redirect successful: {code} -> {target}",
        extra={
            "operation": "redirect",
            "code": code,
            "user_agent": ctx.user_agent,
            "client_ip": ctx.client_ip,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=target, status_code=307)
