from __future__ import annotations

import hashlib
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..auth import (
    clear_session_cookie,
    get_current_user,
    hash_password,
    issue_session_token,
    set_session_cookie,
    verify_password,
)
from ..logging import logger
from ..models.common import MessageResponse
from ..models.user import (
    AuthResponse,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    User,
)
from ..store import AppFirestoreStore, DuplicateUserError, get_store

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _hash_for_log(value: str | None) -> str | None:
    """Shorten identifiers such as email addresses before they reach the logs."""

    if not value:
        return None
    return hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()[:12]


def _auth_response(user: User, status_code: int) -> JSONResponse:
    token = issue_session_token(user.id)
    body = AuthResponse(user=user, token=token)
    response = JSONResponse(status_code=status_code, content=jsonable_encoder(body))
    set_session_cookie(response, token)
    return response


@router.post("/register", response_model=AuthResponse, status_code=HTTPStatus.CREATED)
def register(
    payload: RegisterRequest, store: AppFirestoreStore = Depends(get_store)
) -> JSONResponse:
    """Create an account and sign the caller in."""

    try:
        user = store.create_user(
            username=payload.username,
            email=payload.email,
            password_hash=hash_password(payload.password),
            display_name=payload.display_name,
        )
    except DuplicateUserError as exc:
        logger.info(
            "register_rejected",
            reason=f"duplicate_{exc.field}",
            email_hash=_hash_for_log(payload.email),
        )
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"{exc.field.capitalize()} already exists",
        ) from exc

    logger.info("user_registered", user_id=user.id, email_hash=_hash_for_log(user.email))
    return _auth_response(user, HTTPStatus.CREATED)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, store: AppFirestoreStore = Depends(get_store)) -> JSONResponse:
    credentials = store.get_credentials(payload.login)
    if credentials is None or not verify_password(payload.password, credentials[1]):
        logger.warning("login_failed", login_hash=_hash_for_log(payload.login), reason="invalid_credentials")
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Invalid username or password",
        )
    user = credentials[0]
    logger.info("login_succeeded", user_id=user.id)
    return _auth_response(user, HTTPStatus.OK)


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookie; bearer tokens simply expire."""

    response = JSONResponse(content={"message": "Logged out"})
    clear_session_cookie(response)
    logger.info("logout", request_id=getattr(request.state, "request_id", None))
    return response


@router.get("/me", response_model=User)
def me(user: User = Depends(get_current_user)) -> User:
    return user


@router.put("/me", response_model=User)
def update_me(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> User:
    updated = store.update_profile(user.id, payload)
    if updated is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="User not found")
    return updated

