from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from structlog import contextvars as structlog_contextvars

from .config import settings
from .logging import configure_logging, logger
from .metrics import registry
from .middleware import RateLimitMiddleware, RequestIDMiddleware, SecurityHeadersMiddleware
from .providers import shutdown_providers
from .routers import auth as auth_router
from .routers import health, stats, user_data, vocabulary, word_lists
from .store import StoreError, StoreFactory, open_store


class AccessLogAndMetricsMiddleware(BaseHTTPMiddleware):
    """Emit one ``request_complete`` log per request and record route metrics."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:  # type: ignore[override]
        start = time.perf_counter()
        path = request.url.path
        method = request.method
        request_id = getattr(request.state, "request_id", None)
        if not request_id:
            request_id = uuid4().hex
            request.state.request_id = request_id
        structlog_contextvars.bind_contextvars(request_id=request_id)
        client_ip = request.client.host if request.client else "unknown"
        is_error = False
        is_timeout = False
        status_code: int | None = None
        error_type: str | None = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            is_error = status_code >= 500
            return response
        except Exception as exc:
            is_error = True
            status_code = 500
            error_type = exc.__class__.__name__
            is_timeout = isinstance(exc, asyncio.TimeoutError)
            raise
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            registry.record(
                f"{method} {path}",
                latency_ms,
                status_code=status_code,
                is_error=is_error,
                is_timeout=is_timeout,
            )
            log_method = logger.error if is_error else logger.info
            log_method(
                "request_complete",
                path=path,
                method=method,
                latency_ms=round(latency_ms, 2),
                status_code=status_code,
                is_error=is_error,
                is_timeout=is_timeout,
                error_type=error_type,
                client_ip=client_ip,
                user_agent=request.headers.get("user-agent", "-"),
                user_id=getattr(request.state, "user_id", None),
            )
            structlog_contextvars.unbind_contextvars("request_id")


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(
        "store_failure",
        operation=exc.operation,
        error=str(exc),
        path=request.url.path,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Server error", "reason_code": "STORE_FAILURE"},
    )


async def _not_found_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """JSON body for unknown routes; other HTTP errors keep FastAPI's format."""

    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={"detail": "Route not found", "path": request.url.path},
        )
    return await http_exception_handler(request, exc)


def create_app(store_factory: StoreFactory | None = None) -> FastAPI:
    """Create the FastAPI application.

    ``store_factory`` builds the store opened for the app lifetime; the
    default connects to Firestore (or its emulator).
    """

    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        with open_store(store_factory) as store:
            app.state.store = store
            logger.info(
                "app_started",
                environment=settings.environment,
                llm_provider=settings.llm_provider,
                session_auth=not settings.disable_session_auth,
            )
            try:
                yield
            finally:
                shutdown_providers()
                app.state.store = None

    app = FastAPI(title="Korean Vocab API", version="1.0.0", lifespan=lifespan)

    configured_origins = list(settings.allowed_cors_origins)
    allow_credentials = bool(configured_origins)
    if not configured_origins:
        configured_origins = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=configured_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogAndMetricsMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        ip_capacity_per_minute=settings.rate_limit_per_min_ip,
        user_capacity_per_minute=settings.rate_limit_per_min_user,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    # Added last so it runs first and every other layer sees the request id.
    app.add_middleware(RequestIDMiddleware)

    if settings.disable_session_auth:
        logger.warning("session_auth_disabled", reason="config_flag", default_user_id=settings.default_user_id)

    app.add_exception_handler(StoreError, _store_error_handler)
    app.add_exception_handler(StarletteHTTPException, _not_found_handler)

    app.include_router(health.router)
    app.include_router(auth_router.router)
    app.include_router(word_lists.router)
    app.include_router(stats.router)
    app.include_router(vocabulary.router)
    app.include_router(user_data.router)

    return app


app = create_app()
