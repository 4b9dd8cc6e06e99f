from __future__ import annotations

import uuid
from datetime import UTC, datetime

import bcrypt
from fastapi import Depends, HTTPException, Request, Response, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import settings
from .logging import logger
from .models.user import User
from .store import AppFirestoreStore, get_store

_SESSION_SALT = "korean_vocab.session"
_BEARER_PREFIX = "bearer "
_BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(_BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash; malformed hashes never match."""

    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        return False


def _build_serializer() -> URLSafeTimedSerializer:
    secret = settings.session_secret_key.strip()
    if not secret:
        raise RuntimeError("SESSION_SECRET_KEY is not configured")
    return URLSafeTimedSerializer(secret, salt=_SESSION_SALT)


def session_max_age() -> int:
    """Session lifetime in seconds, never shorter than a minute."""

    return max(60, int(settings.session_max_age_seconds or 0))


def issue_session_token(user_id: str) -> str:
    payload = {
        "sid": uuid.uuid4().hex,
        "sub": user_id,
        "issued_at": datetime.now(UTC).replace(microsecond=0).isoformat(),
    }
    return _build_serializer().dumps(payload)


def verify_session_token(token: str) -> dict:
    return _build_serializer().loads(token, max_age=session_max_age())


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        max_age=session_max_age(),
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def _session_log_context(
    request: Request, *, reason: str, user_id: str | None
) -> dict[str, object]:
    """Log fields shared with the access log so auth failures can be filtered."""

    return {
        "user_id": user_id,
        "reason": reason,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
        "user_agent": request.headers.get("user-agent"),
        "request_id": getattr(request.state, "request_id", None),
    }


def read_session_token(request: Request) -> str | None:
    """Return the session token from the ``Authorization`` header or the cookie.

    A bearer token takes precedence so API clients can ignore cookies.
    """

    authorization = request.headers.get("authorization") or ""
    if authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX):].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name) or None


def _unauthorized(request: Request, reason: str, detail: str, user_id: str | None = None) -> HTTPException:
    logger.warning(
        "session_validation_failed",
        **_session_log_context(request, reason=reason, user_id=user_id),
    )
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _default_user() -> User:
    return User(id=settings.default_user_id, username=settings.default_user_id, email="")


async def get_current_user(
    request: Request, store: AppFirestoreStore = Depends(get_store)
) -> User:
    """Resolve the authenticated user and attach it to ``request.state``."""

    if settings.disable_session_auth:
        user = store.get_user(settings.default_user_id) or _default_user()
        request.state.user_id = user.id
        return user

    raw_token = read_session_token(request)
    if not raw_token:
        raise _unauthorized(request, "missing_token", "Authentication required")

    try:
        payload = verify_session_token(raw_token)
    except SignatureExpired as exc:
        raise _unauthorized(request, "expired", "Session expired") from exc
    except BadSignature as exc:
        raise _unauthorized(request, "bad_signature", "Invalid session token") from exc
    except RuntimeError as exc:
        logger.error(
            "session_validation_failed",
            **_session_log_context(request, reason="configuration_error", user_id=None),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session configuration error",
        ) from exc

    sub = payload.get("sub") if isinstance(payload, dict) else None
    if not sub:
        raise _unauthorized(request, "missing_sub", "Invalid session payload")

    user = store.get_user(sub)
    if user is None:
        raise _unauthorized(request, "user_not_found", "User not found", user_id=sub)

    request.state.user = user
    request.state.user_id = user.id
    return user
