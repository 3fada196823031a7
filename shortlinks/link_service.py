"""Short Link Service Layer - Core Business Logic

This module provides the allocation, resolution, click accounting and
ownership-guarded deletion of short links, with logging and metrics on every
path.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                      LinkService                            │
    │  ┌──────────────┐  ┌──────────────┐  ┌──────────────────┐   │
    │  │  Allocator   │  │   Resolver   │  │ Ownership Guard  │   │
    │  │ • generate   │  │ • lookup     │  │ • owner check    │   │
    │  │ • retry on   │  │ • normalize  │  │ • conditional    │   │
    │  │   collision  │  │ • validate   │  │   delete         │   │
    │  └──────┬───────┘  └──────┬───────┘  └────────┬─────────┘   │
    │         │          ┌──────▼───────┐           │             │
    │         │          │    Click     │           │             │
    │         │          │  Accountant  │           │             │
    │         │          └──────┬───────┘           │             │
    └─────────┼─────────────────┼───────────────────┼─────────────┘
              ▼                 ▼                   ▼
    ┌─────────────────────────────────────────────────────────────┐
    │        LinkStore (PostgreSQL)     +    LinkCache (Redis)    │
    └─────────────────────────────────────────────────────────────┘

Link Creation Flow
------------------
::
    ┌─────────────┐
    │ POST /api/  │
    │ links       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Reject anon  │──► UnauthorizedError
    │ / empty URL  │──► ValidationError
    └──────┬──────┘
           ▼
    ┌─────────────┐      taken / ConflictError
    │ Generate     │◄──────────────┐
    │ candidate    │               │
    └──────┬──────┘               │
           ▼                      │
    ┌─────────────┐               │
    │ is_taken? → │───────────────┤
    │ insert      │───────────────┘ (attempts < max)
    └──────┬──────┘
           ▼                 attempts exhausted
    ┌─────────────┐          ──► AllocationExhaustedError
    │ Return link │
    │ + short URL │
    └─────────────┘

Resolution Flow
---------------
::
    ┌─────────────┐
    │ GET /:code  │
    └──────┬──────┘
           ▼
    ┌─────────────┐  miss / stale  ┌─────────────┐  absent / malformed
    │ Cache       │──────────────► │ Store find, │──► NotFoundError
    │ lookup      │                │ normalize   │
    └──────┬──────┘                └──────┬──────┘
       hit │ (pinned to cached link id)   │
           └──────────┬───────────────────┘
                      ▼
    ┌─────────────────────────────┐  0 rows
    │ UPDATE clicks = clicks + 1, │──► evict; a stale hit falls back to
    │ last_clicked_at = now       │    the store, otherwise NotFoundError
    │ INSERT click event          │
    └──────────────┬──────────────┘
                   ▼
    ┌─────────────┐
    │ 307 Redirect│
    └─────────────┘

Usage Examples
=============

```python
service = LinkService.from_context(ctx)
created = await service.create_link("openai.com", owner_id="u1")
target = await service.resolve(created.link.code)   # "https://openai.com"
await service.delete_link(created.link.code, caller_id="u1")
```
"""

import datetime
import logging
import time
from dataclasses import dataclass

import validators
from prometheus_client import Counter, Histogram

from shortlinks.codegen import ShortCodeGenerator
from shortlinks.config import Settings, get_settings
from shortlinks.enums import CacheStatus, RequestStatus
from shortlinks.errors import (
    AllocationExhaustedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ShortLinkError,
    UnauthorizedError,
    ValidationError,
)
from shortlinks.models import ClickEvent, Link
from shortlinks.redis import LinkCache
from shortlinks.store import LinkStore

__all__ = ["CreatedLink", "LinkService", "normalize_target_url", "RESERVED_CODES"]


# Path segments served by fixed routes; a link under one of these could never be resolved.
RESERVED_CODES = frozenset({"api", "docs", "health", "metrics", "openapi.json", "redoc"})


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlinks_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "shortlinks_creation_duration_seconds",
    "Time taken to allocate and persist a short link",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
ALLOCATION_COLLISIONS_TOTAL = Counter(
    "shortlinks_allocation_collisions_total",
    "Candidate codes rejected because they were already taken",
)
ALLOCATION_EXHAUSTED_TOTAL = Counter(
    "shortlinks_allocation_exhausted_total",
    "Allocations that ran out of attempts (keyspace pressure)",
)
RESOLUTION_REQUESTS_TOTAL = Counter(
    "shortlinks_resolution_requests_total",
    "Total short code resolutions",
    ["status", "cache_hit"],
)
RESOLUTION_DURATION = Histogram(
    "shortlinks_resolution_duration_seconds",
    "Time taken to resolve a short code and count the click",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
CLICKS_RECORDED_TOTAL = Counter(
    "shortlinks_clicks_recorded_total",
    "Clicks counted by the click accountant",
)
DELETION_REQUESTS_TOTAL = Counter(
    "shortlinks_deletion_requests_total",
    "Total link deletion requests",
    ["status"],
)


# ============================================================================
# TARGET NORMALIZATION
# ============================================================================

def normalize_target_url(raw_url: str | None) -> str | None:
    """Turn a stored target into a redirectable absolute URL.

    Whitespace is trimmed and ``https://`` is prepended when the value has
    neither an ``http://`` nor an ``https://`` prefix (in any letter case).
    Returns None when the result is not a well-formed absolute URL.

    Example:
        >>> normalize_target_url("  example.com/x ")
        'https://example.com/x'
        >>> normalize_target_url("not a url") is None
        True
    """
    if raw_url is None:
        return None

    candidate = raw_url.strip()
    if not candidate:
        return None
    if not candidate.lower().startswith(("http://", "https://")):
        candidate = f"https://{candidate}"

    # simple_host admits single-label hosts such as localhost or intranet names.
    if not validators.url(candidate, strict_query=False, simple_host=True):
        return None
    return candidate


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class CreatedLink:
    """A freshly allocated link and its public short URL."""

    link: Link
    short_url: str

    @property
    def code(self) -> str:
        return self.link.code


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================

class LinkService:
    """Allocation, resolution, click accounting and deletion of short links.

    The service keeps no state between calls: the store is the only shared
    mutable resource and every identity arrives as an explicit argument.

    Example:
        >>> service = LinkService(store, settings=settings)
        >>> created = await service.create_link("openai.com", owner_id="u1")
        >>> await service.resolve(created.code)
        'https://openai.com'
    """

    def __init__(
        self,
        store: LinkStore,
        *,
        settings: Settings | None = None,
        generator: ShortCodeGenerator | None = None,
        cache: LinkCache | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._generator = generator or ShortCodeGenerator(
            length=self._settings.SHORT_CODE_LENGTH,
            alphabet=self._settings.SHORT_CODE_ALPHABET,
        )
        self._cache = cache
        self._logger = logger or logging.getLogger("shortlinks")

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "LinkService":  # noqa: F821
        """Factory method to create the service from a RequestContext.

        Args:
            ctx: Request context with the store, cache, settings and logger

        Returns:
            LinkService: Service instance bound to the request's logger
        """
        return cls(
            ctx.store,
            settings=ctx.settings,
            generator=ctx.generator,
            cache=ctx.cache,
            logger=ctx.logger,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    def short_url_for(self, code: str) -> str:
        return f"{self._settings.BASE_URL}/{code}"

    # ========================================================================
    # ALLOCATOR
    # ========================================================================

    async def create_link(self, target_url: str | None, owner_id: str | None) -> CreatedLink:
        """Allocate a unique code for ``target_url`` and persist the link.

        The target is stored verbatim. Candidates are retried up to
        ``ALLOCATION_MAX_ATTEMPTS`` times when they already exist, name a
        fixed route, or lose an insert race to a concurrent allocation.

        Args:
            target_url: Destination as submitted by the caller
            owner_id: Identity of the creator, None for anonymous callers

        Returns:
            CreatedLink: The persisted link and its short URL

        Raises:
            UnauthorizedError: If anonymous creation is disabled and no owner is given
            ValidationError: If the target URL is missing or blank
            AllocationExhaustedError: If every attempt collided
            StoreError: If the store fails
        """
        start_time = time.perf_counter()
        try:
            if owner_id is None and not self._settings.ALLOW_ANONYMOUS_CREATE:
                raise UnauthorizedError()
            if target_url is None or not target_url.strip():
                raise ValidationError("URL is required")

            link = await self._allocate(target_url, owner_id)
        except ShortLinkError as exc:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)
            LINK_CREATION_REQUESTS_TOTAL.labels(status=_status_for(exc)).inc()
            raise

        duration = time.perf_counter() - start_time
        LINK_CREATION_DURATION.observe(duration)
        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link created: {link.code} for owner {owner_id} in {duration:.3f}s")
        return CreatedLink(link=link, short_url=self.short_url_for(link.code))

    async def _allocate(self, target_url: str, owner_id: str | None) -> Link:
        max_attempts = self._settings.ALLOCATION_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            code = self._generator.generate()

            if code in RESERVED_CODES or await self._store.is_taken(code):
                ALLOCATION_COLLISIONS_TOTAL.inc()
                self._logger.debug(f"Code {code} already taken (attempt {attempt}/{max_attempts})")
                continue

            try:
                return await self._store.create_if_absent(
                    code,
                    target_url=target_url,
                    owner_id=owner_id,
                    created_at=_utcnow(),
                )
            except ConflictError:
                ALLOCATION_COLLISIONS_TOTAL.inc()
                self._logger.warning(f"Insert race lost for code {code} (attempt {attempt}/{max_attempts})")

        ALLOCATION_EXHAUSTED_TOTAL.inc()
        self._logger.error(
            f"Allocation exhausted after {max_attempts} attempts "
            f"(keyspace {self._generator.keyspace_size} codes)"
        )
        raise AllocationExhaustedError()

    # ========================================================================
    # RESOLVER
    # ========================================================================

    async def resolve(self, code: str) -> str:
        """Resolve ``code`` to its redirect target and count the click.

        The click is recorded before the target is returned, so the caller
        only redirects once the count is committed.

        Args:
            code: Short code exactly as it appears in the short URL

        Returns:
            str: Normalized absolute URL to redirect to

        Raises:
            NotFoundError: If the code is unknown or its target is not a usable URL
            StoreError: If the store fails
        """
        start_time = time.perf_counter()
        cache_status = CacheStatus.MISS
        try:
            target = await self._resolve_from_cache(code)
            if target is not None:
                cache_status = CacheStatus.HIT
            else:
                link_id, target = await self._lookup_target(code)
                try:
                    await self.record_click(code, link_id=link_id)
                except NotFoundError:
                    await self._evict(code)
                    raise
        except ShortLinkError as exc:
            RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
            RESOLUTION_REQUESTS_TOTAL.labels(status=_status_for(exc), cache_hit=cache_status).inc()
            raise

        RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
        RESOLUTION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=cache_status).inc()
        return target

    async def _resolve_from_cache(self, code: str) -> str | None:
        """Count the click against the cached link, or None on a miss or stale entry."""
        if self._cache is None:
            return None
        cached = await self._cache.get_target(code)
        if cached is None:
            return None

        try:
            await self.record_click(code, link_id=cached.link_id)
        except NotFoundError:
            # Deleted, or deleted and reallocated to a different link.
            self._logger.info(f"Stale cache entry for {code} (link {cached.link_id}), evicting")
            await self._evict(code)
            return None
        return cached.target_url

    async def _lookup_target(self, code: str) -> tuple[int, str]:
        link = await self._store.find(code)
        if link is None:
            self._logger.info(f"Resolution failed - unknown code: {code}")
            raise NotFoundError()

        target = normalize_target_url(link.target_url)
        if target is None:
            self._logger.warning(f"Resolution failed - unusable target for {code}: {link.target_url!r}")
            raise NotFoundError()

        if self._cache is not None:
            await self._cache.set_target(code, link.id, target)
        return link.id, target

    async def _evict(self, code: str) -> None:
        if self._cache is not None:
            await self._cache.evict(code)

    # ========================================================================
    # CLICK ACCOUNTANT
    # ========================================================================

    async def record_click(self, code: str, link_id: int | None = None) -> int:
        """Atomically count one click on ``code``.

        Args:
            code: Short code that was resolved
            link_id: When given, only count the click if ``code`` still
                belongs to this link

        Returns:
            int: The click count after this increment

        Raises:
            NotFoundError: If the link no longer exists
        """
        click_count = await self._store.increment_clicks(
            code,
            clicked_at=_utcnow(),
            record_event=self._settings.CLICK_EVENTS_ENABLED,
            link_id=link_id,
        )
        CLICKS_RECORDED_TOTAL.inc()
        self._logger.debug(f"Click recorded for {code}: {click_count}")
        return click_count

    # ========================================================================
    # OWNERSHIP GUARD
    # ========================================================================

    async def delete_link(self, code: str, caller_id: str | None) -> int:
        """Delete ``code`` on behalf of its owner.

        Args:
            code: Short code to delete
            caller_id: Identity of the caller

        Returns:
            int: Rows removed; 0 means a concurrent authorized delete got there first

        Raises:
            UnauthorizedError: If there is no caller identity
            NotFoundError: If the code does not exist
            ForbiddenError: If the caller does not own the link
        """
        try:
            if caller_id is None:
                raise UnauthorizedError()

            link = await self._store.find(code)
            if link is None:
                raise NotFoundError()
            if link.owner_id != caller_id:
                self._logger.warning(f"Delete of {code} refused for {caller_id}: owned by {link.owner_id}")
                raise ForbiddenError()

            deleted = await self._store.delete_if_owner(
                code,
                caller_id,
                retire=not self._settings.REUSE_DELETED_CODES,
            )
        except ShortLinkError as exc:
            DELETION_REQUESTS_TOTAL.labels(status=_status_for(exc)).inc()
            raise

        await self._evict(code)
        DELETION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link {code} deleted by {caller_id} (rows affected: {deleted})")
        return deleted

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    async def list_links(self, owner_id: str | None) -> list[Link]:
        """All links owned by ``owner_id``, newest first."""
        if owner_id is None:
            raise UnauthorizedError()
        return await self._store.list_by_owner(owner_id)

    async def get_link(self, code: str) -> Link:
        link = await self._store.find(code)
        if link is None:
            raise NotFoundError()
        return link

    async def list_click_events(self, code: str, limit: int = 50) -> list[ClickEvent]:
        await self.get_link(code)
        return await self._store.list_click_events(code, limit=limit)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def _status_for(exc: ShortLinkError) -> RequestStatus:
    if isinstance(exc, ValidationError):
        return RequestStatus.VALIDATION_ERROR
    if isinstance(exc, UnauthorizedError):
        return RequestStatus.UNAUTHORIZED
    if isinstance(exc, ForbiddenError):
        return RequestStatus.FORBIDDEN
    if isinstance(exc, NotFoundError):
        return RequestStatus.NOT_FOUND
    if isinstance(exc, AllocationExhaustedError):
        return RequestStatus.EXHAUSTED
    return RequestStatus.ERROR
