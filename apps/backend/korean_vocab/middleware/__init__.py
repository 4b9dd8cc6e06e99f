from __future__ import annotations

import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, status
from itsdangerous import BadSignature, SignatureExpired
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from ..auth import read_session_token, verify_session_token
from ..config import settings
from ..logging import logger

__all__ = [
    "GenerationRateLimiter",
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "SecurityHeadersMiddleware",
    "generation_rate_limit",
]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Set ``request.state.request_id`` and echo it as ``X-Request-ID``.

    A well-formed incoming ``X-Request-ID`` is reused so callers can correlate logs.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        incoming = (request.headers.get("x-request-id") or "").strip()
        request_id = incoming if 0 < len(incoming) <= 128 else str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach a fixed set of security headers to every API response."""

    def __init__(self, app) -> None:
        super().__init__(app)
        self._headers = self._build_header_map()

    @staticmethod
    def _build_hsts_value() -> str:
        directives = [f"max-age={max(0, int(settings.security_hsts_max_age_seconds))}"]
        if settings.security_hsts_include_subdomains:
            directives.append("includeSubDomains")
        return "; ".join(directives)

    def _build_header_map(self) -> dict[str, str]:
        return {
            "Strict-Transport-Security": self._build_hsts_value(),
            "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        response = await call_next(request)
        for header_name, value in self._headers.items():
            response.headers.setdefault(header_name, value)
        return response


class _TokenBucket:
    """Thread-safe bucket that refills to capacity once per interval (seconds)."""

    def __init__(self, capacity: int, refill_interval_sec: float) -> None:
        self.capacity = max(1, capacity)
        self.tokens = self.capacity
        self.refill_interval = max(1.0, float(refill_interval_sec))
        self.last_refill = time.monotonic()
        self._lock = threading.Lock()

    def allow(self) -> tuple[bool, int]:
        """Consume one token if available; returns ``(allowed, remaining)``."""

        now = time.monotonic()
        with self._lock:
            if now - self.last_refill >= self.refill_interval:
                self.tokens = self.capacity
                self.last_refill = now
            if self.tokens > 0:
                self.tokens -= 1
                return True, self.tokens
            return False, 0

    def seconds_until_refill(self) -> int:
        return max(1, int(self.refill_interval - (time.monotonic() - self.last_refill)))


@dataclass
class _TrackedBucket:
    bucket: _TokenBucket
    last_seen: float


class _BucketTable:
    """Keyed buckets with idle expiry and an upper bound on the number of keys."""

    def __init__(
        self,
        *,
        capacity: int,
        refill_interval_sec: float,
        ttl_seconds: float = 15 * 60,
        max_keys: int = 10_000,
    ) -> None:
        self._capacity = max(1, int(capacity))
        self._interval = float(refill_interval_sec)
        self._ttl = max(self._interval, float(ttl_seconds))
        self._max_keys = max(1, int(max_keys))
        self._entries: OrderedDict[str, _TrackedBucket] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def _prune(self, now: float) -> None:
        for key in [k for k, e in self._entries.items() if now - e.last_seen > self._ttl]:
            self._entries.pop(key, None)
        while len(self._entries) >= self._max_keys:
            self._entries.popitem(last=False)

    def get(self, key: str) -> _TokenBucket:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._prune(now)
                entry = _TrackedBucket(
                    bucket=_TokenBucket(self._capacity, self._interval), last_seen=now
                )
                self._entries[key] = entry
            else:
                entry.last_seen = now
                self._entries.move_to_end(key, last=True)
            return entry.bucket


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP and per-session request limits on ``/api`` routes.

    The user key comes from a verified session token only, so forged headers
    cannot move a caller into a fresh bucket.
    """

    def __init__(
        self,
        app,
        *,
        ip_capacity_per_minute: int,
        user_capacity_per_minute: int,
    ) -> None:
        super().__init__(app)
        self._ip_buckets = _BucketTable(capacity=ip_capacity_per_minute, refill_interval_sec=60.0)
        self._user_buckets = _BucketTable(capacity=user_capacity_per_minute, refill_interval_sec=60.0)

    def _resolve_user_key(self, request: Request, client_ip: str) -> str | None:
        raw_token = read_session_token(request)
        if not raw_token:
            return None
        try:
            payload = verify_session_token(raw_token)
        except SignatureExpired:
            logger.debug("rate_limit_session_invalid", reason="expired", client_ip=client_ip)
            return None
        except BadSignature:
            logger.debug("rate_limit_session_invalid", reason="bad_signature", client_ip=client_ip)
            return None
        except RuntimeError:
            logger.error("rate_limit_session_invalid", reason="configuration_error", client_ip=client_ip)
            return None
        sub = payload.get("sub") if isinstance(payload, dict) else None
        return sub if isinstance(sub, str) and sub else None

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        client_ip = _client_ip(request)
        ok_ip, remaining_ip = self._ip_buckets.get(client_ip).allow()
        headers = {
            "X-RateLimit-Limit-Ip": str(self._ip_buckets.capacity),
            "X-RateLimit-Remaining-Ip": str(remaining_ip),
        }
        if not ok_ip:
            logger.warning("rate_limited", scope="ip", client_ip=client_ip, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too Many Requests (per IP)"},
                headers={"Retry-After": "60", **headers},
            )

        user_key = self._resolve_user_key(request, client_ip)
        if user_key is not None:
            ok_user, remaining_user = self._user_buckets.get(user_key).allow()
            headers["X-RateLimit-Limit-User"] = str(self._user_buckets.capacity)
            headers["X-RateLimit-Remaining-User"] = str(remaining_user)
            if not ok_user:
                logger.warning("rate_limited", scope="user", user_id=user_key, path=request.url.path)
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Too Many Requests (per User)"},
                    headers={"Retry-After": "60", **headers},
                )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response


class GenerationRateLimiter:
    """Route dependency limiting vocabulary generation per client IP.

    Disabled in the development environment.
    """

    def __init__(self, *, capacity: int, window_seconds: float) -> None:
        self._buckets = _BucketTable(
            capacity=capacity, refill_interval_sec=window_seconds, ttl_seconds=window_seconds
        )

    def __call__(self, request: Request) -> None:
        if settings.is_development:
            return
        client_ip = _client_ip(request)
        bucket = self._buckets.get(client_ip)
        allowed, _ = bucket.allow()
        if allowed:
            return
        retry_after = bucket.seconds_until_refill()
        logger.warning("generation_rate_limited", client_ip=client_ip, retry_after=retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": "Too many vocabulary generation requests. Try again later.",
                "reason_code": "GENERATION_RATE_LIMIT",
                "retry_after_seconds": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )


generation_rate_limit = GenerationRateLimiter(
    capacity=settings.generate_rate_limit_count,
    window_seconds=settings.generate_rate_limit_window_seconds,
)
