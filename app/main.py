"""
Pawmatch — FastAPI Application Entry Point

Wires together:
- Async lifespan management (DB pool, realtime change feed)
- CORS, timeout, and request-context logging middleware
- Health-check endpoints (liveness + deep readiness)
- In-flight request tracking so shutdown can drain open requests
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import get_settings
from app.database import dispose_engine, get_engine, get_session_factory
from app.realtime import get_change_feed
from app.utils.storage import get_bucket

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(0),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("pawmatch")

REQUEST_ID_HEADER = "X-Request-Id"


# ---------------------------------------------------------------------------
# In-flight requests
# ---------------------------------------------------------------------------

class InFlightRequests:
    """Counts open HTTP requests so shutdown can wait for them."""

    def __init__(self, drain_timeout: float = 15.0) -> None:
        self.drain_timeout = drain_timeout
        self._count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def count(self) -> int:
        return self._count

    def enter(self) -> None:
        self._count += 1
        self._idle.clear()

    def leave(self) -> None:
        self._count -= 1
        if self._count <= 0:
            self._count = 0
            self._idle.set()

    async def drain(self) -> None:
        """Wait for the count to reach zero, or give up after the timeout."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("drain_timeout_exceeded", remaining_requests=self._count)


in_flight = InFlightRequests()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Bring up the DB pool and change feed; tear them down in reverse."""
    settings = get_settings()

    # -- Startup --------------------------------------------------------- #
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
        realtime_backend=settings.REALTIME_BACKEND,
    )

    async with get_engine().begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised")

    feed = get_change_feed()
    await feed.start()
    logger.info("change_feed_started", backend=type(feed).__name__)

    logger.info("startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------- #
    logger.info("shutdown_begin", in_flight=in_flight.count)

    await in_flight.drain()

    # Ends every open chat subscription.
    await feed.stop()
    logger.info("change_feed_stopped")

    await dispose_engine()
    logger.info("database_pool_closed")

    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 once a request runs past its wall-clock budget.

    WebSocket traffic never passes through ``BaseHTTPMiddleware``, so live
    chat connections are not subject to this limit.
    """

    def __init__(self, app, timeout_seconds: float = 30.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"detail": "The server took too long to respond."},
            )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and the acting user to every log line of a request.

    The id is taken from ``X-Request-Id`` when the caller sends one and is
    echoed back on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            user_id=request.headers.get("X-User-Id"),
        )
        log = logger.bind(method=request.method, path=request.url.path)

        started = time.perf_counter()
        in_flight.enter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request_error", duration_ms=_elapsed_ms(started))
            raise
        finally:
            in_flight.leave()

        response.headers[REQUEST_ID_HEADER] = request_id
        log.info(
            "request_handled",
            status=response.status_code,
            duration_ms=_elapsed_ms(started),
        )
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

settings = get_settings()

app = FastAPI(
    title="Pawmatch",
    description="Pet playdate matching, chat and pet-sitter marketplace",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

# Last added runs first: CORS, then the timeout, then request context.
app.add_middleware(RequestContextMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


# -- Health-check endpoints ------------------------------------------------ #

async def _check_database() -> str:
    async with get_session_factory()() as session:
        await session.execute(text("SELECT 1"))
    return "connected"


async def _check_realtime() -> str:
    if not await get_change_feed().ping():
        raise RuntimeError("change feed not started")
    return "connected"


async def _check_gcs() -> str:
    if not get_settings().GCS_BUCKET_NAME:
        return "not_configured"
    if not await asyncio.to_thread(lambda: get_bucket().exists()):
        raise RuntimeError("bucket not found")
    return "accessible"


_READINESS_CHECKS: dict[str, Callable[[], Awaitable[str]]] = {
    "database": _check_database,
    "realtime": _check_realtime,
    "gcs": _check_gcs,
}


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    """Liveness probe: the process is up and serving."""
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep() -> dict:
    """Readiness probe over the database, the change feed and GCS."""
    result: dict = {"status": "healthy"}
    for name, check in _READINESS_CHECKS.items():
        try:
            result[name] = await check()
        except Exception as exc:
            logger.error("health_check_failed", component=name, error=str(exc))
            result[name] = f"error: {exc}"
            result["status"] = "degraded"
    return result


# -- API router ------------------------------------------------------------ #

from app.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
