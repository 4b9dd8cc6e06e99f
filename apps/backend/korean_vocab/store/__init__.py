from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from fastapi import Request
from google.cloud import firestore

from ..config import settings
from ..logging import logger
from .errors import DocumentExistsError, DuplicateUserError, StoreError, WordListNotFoundError
from .firestore_store import AppFirestoreStore

_DEFAULT_EMULATOR_HOST = "127.0.0.1:8080"

StoreFactory = Callable[[], AppFirestoreStore]


def _normalize_emulator_host(raw_host: str | None) -> str | None:
    """Prefix a bare ``host:port`` with ``http://``; empty means unset."""

    host = (raw_host or "").strip()
    if not host:
        return None
    if host.startswith(("http://", "https://")):
        return host
    return f"http://{host}"


def build_firestore_client() -> firestore.Client:
    """Build the Firestore client.

    An explicit emulator host wins. Outside production the local emulator at
    127.0.0.1:8080 is used when nothing is configured. Production talks to
    Cloud Firestore.
    """

    emulator_host = _normalize_emulator_host(
        settings.firestore_emulator_host
        or os.environ.get("FIRESTORE_EMULATOR_HOST")
        or (_DEFAULT_EMULATOR_HOST if settings.environment.strip().lower() != "production" else None)
    )
    project_id = settings.firestore_project_id or settings.gcp_project_id
    if emulator_host:
        # The client switches to anonymous credentials when this variable is set.
        os.environ.setdefault(
            "FIRESTORE_EMULATOR_HOST",
            emulator_host.removeprefix("http://").removeprefix("https://"),
        )
        return firestore.Client(project=project_id, client_options={"api_endpoint": emulator_host})
    return firestore.Client(project=project_id)


def create_store() -> AppFirestoreStore:
    return AppFirestoreStore(client=build_firestore_client())


@contextmanager
def open_store(factory: StoreFactory | None = None) -> Iterator[AppFirestoreStore]:
    """Open the application store for the lifetime of the ``with`` block."""

    store = (factory or create_store)()
    logger.info("store_opened", store=store.__class__.__name__)
    try:
        yield store
    finally:
        store.close()
        logger.info("store_closed")


def get_store(request: Request) -> AppFirestoreStore:
    """FastAPI dependency returning the store opened by the app lifespan."""

    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreError("get_store", "store is not initialised")
    return store


__all__ = [
    "AppFirestoreStore",
    "DocumentExistsError",
    "DuplicateUserError",
    "StoreError",
    "StoreFactory",
    "WordListNotFoundError",
    "build_firestore_client",
    "create_store",
    "get_store",
    "open_store",
]
