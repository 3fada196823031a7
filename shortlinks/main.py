"""FastAPI application entry point for the short link service.

This module configures and initializes the FastAPI application with middleware,
lifecycle management, error translation and route registration.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Create      │
    │ FastAPI app │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ CORS, error │
    │ handler,    │
    │ /metrics    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ init_db()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ close_db()  │
    │ close_redis()│
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortlinks.main:app --host 0.0.0.0 --port 8000 --reload

**Step 2 — Make API calls**::
    # Shorten a URL (token carries id/email claims)
    curl -X POST http://localhost:8000/api/links \
         -H "Authorization: Bearer $TOKEN" \
         -H "Content-Type: application/json" \
         -d '{"url": "openai.com"}'

    # Follow it
    curl -i http://localhost:8000/<code>

Key Behaviours
===============
- Database tables are created automatically on startup.
- ShortLinkError subclasses become JSON errors with their own status code;
  server-side failures never expose driver messages.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlinks.config import get_settings
from shortlinks.database import close_db, init_db
from shortlinks.dependencies import _service_manager
from shortlinks.errors import ShortLinkError
from shortlinks.redis import close_redis
from shortlinks.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Short links with click accounting",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShortLinkError)
async def short_link_error_handler(request: Request, exc: ShortLinkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
