"""Shared fixtures: an app wired to the in-memory Firestore fake and a signed-in client."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
for _path in (_ROOT, _ROOT / "apps" / "backend"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

# Settings are read at import time; pin a valid configuration before any
# korean_vocab module is imported.
os.environ.setdefault("SESSION_SECRET_KEY", "S9kD2fH5jL8pQ1tV4yX7zB0cN3mR6wA9")
os.environ.setdefault("STRICT_MODE", "false")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DISABLE_SESSION_AUTH", "false")
os.environ.setdefault("LLM_PROVIDER", "local")

from fastapi.testclient import TestClient  # noqa: E402

from korean_vocab import providers  # noqa: E402
from korean_vocab.main import create_app  # noqa: E402
from korean_vocab.metrics import registry  # noqa: E402
from korean_vocab.store import AppFirestoreStore  # noqa: E402
from tests.firestore_fakes import FakeFirestoreClient  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_shared_state() -> Iterator[None]:
    registry.reset()
    providers._set_llm_instance(None)
    yield
    providers.shutdown_providers()


@pytest.fixture
def fake_client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture
def store(fake_client: FakeFirestoreClient) -> AppFirestoreStore:
    return AppFirestoreStore(client=fake_client)


@pytest.fixture
def app(store: AppFirestoreStore):
    return create_app(store_factory=lambda: store)


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _register(client: TestClient, username: str = "minji", password: str = "secret123") -> dict:
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def register_user():
    """Callable registering an account through the API and returning the auth body."""

    return _register


@pytest.fixture
def auth_headers(client: TestClient) -> dict[str, str]:
    """Bearer header for a freshly registered user; the client cookie is cleared."""

    body = _register(client)
    client.cookies.clear()
    return {"Authorization": f"Bearer {body['token']}"}
