"""Dependency injection with a singleton service manager.

This module provides a centralized way to inject the store, cache, code
generator and logger into API endpoints, using a singleton for shared
resources to minimize per-request overhead.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks.codegen import ShortCodeGenerator
from shortlinks.config import Settings, get_settings
from shortlinks.database import get_session_factory
from shortlinks.link_service import LinkService
from shortlinks.redis import LinkCache, get_redis, get_redis_read
from shortlinks.store import SQLAlchemyLinkStore


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    Holds what does not need to be created per request: settings, the
    logger, the code generator and the Redis-backed cache.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger()
            self.generator = ShortCodeGenerator(
                length=self.settings.SHORT_CODE_LENGTH,
                alphabet=self.settings.SHORT_CODE_ALPHABET,
            )
            self.cache = await self._setup_cache()
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlinks")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(getattr(logging, self.settings.LOG_LEVEL.upper(), logging.INFO))
        return logger

    async def _setup_cache(self) -> LinkCache | None:
        """Setup the resolved-target cache once, if enabled."""
        if not self.settings.CACHE_ENABLED:
            self.logger.info("Link cache disabled")
            return None
        return LinkCache(
            await get_redis(),
            await get_redis_read(),
            ttl_seconds=self.settings.CACHE_TTL_SECONDS,
            logger=self.logger,
        )

    async def cleanup(self) -> None:
        """Release shared resources at shutdown."""
        self.cache = None
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Request context with tracking and shared resource access.

    Attributes:
        session_factory: Factory the store opens one session per operation from
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    session_factory: async_sessionmaker[AsyncSession]
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def store(self) -> SQLAlchemyLinkStore:
        return SQLAlchemyLinkStore(self.session_factory)

    @property
    def cache(self) -> LinkCache | None:
        return self.service_manager.cache

    @property
    def generator(self) -> ShortCodeGenerator:
        return self.service_manager.generator

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        """Add a tag to the request context."""
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    """Get the singleton service manager, initializing it on first use."""
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    """Build the request context from the incoming request.

    Args:
        request: FastAPI Request object for extracting client info
        session_factory: Session factory for the store
        manager: Singleton service manager with shared resources

    Returns:
        RequestContext: Context for the request
    """
    client_ip = request.client.host if request.client else None

    return RequestContext(
        session_factory=session_factory,
        service_manager=manager,
        trace_id=request.headers.get("x-trace-id"),
        user_agent=request.headers.get("user-agent"),
        client_ip=client_ip,
    )


def get_link_service(ctx: RequestContext = Depends(get_request_context)) -> LinkService:
    """Create the link service for this request."""
    return LinkService.from_context(ctx)
