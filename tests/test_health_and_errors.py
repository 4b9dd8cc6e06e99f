from fastapi.testclient import TestClient
from google.api_core import exceptions as gexc

from korean_vocab.config import settings


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_api_health_reports_configuration(client):
    body = client.get("/api/health").json()

    assert body["status"] == "OK"
    assert body["store"] == "AppFirestoreStore"
    assert body["llm"]["provider"] == settings.llm_provider


def test_store_round_trip(client):
    response = client.get("/api/test-store")

    assert response.status_code == 200
    assert response.json()["counts"] == {"word_lists": 0, "user_data": 0}


def test_store_failure_is_a_generic_500(client, fake_client):
    fake_client.fail_with = gexc.DeadlineExceeded("deadline")

    response = client.get("/api/test-store")

    assert response.status_code == 500
    assert response.json() == {"detail": "Server error", "reason_code": "STORE_FAILURE"}


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"detail": "Route not found", "path": "/api/nope"}


def test_responses_carry_request_id_and_security_headers(client):
    response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "max-age=" in response.headers["Strict-Transport-Security"]


def test_metrics_snapshot_counts_requests(client):
    client.get("/healthz")
    client.get("/api/nope")

    routes = client.get("/metrics").json()["routes"]

    assert routes["GET /healthz"]["count"] == 1
    assert routes["GET /api/nope"]["status"] == {"4xx": 1}


def test_lifespan_closes_the_store(app, fake_client):
    with TestClient(app):
        assert not fake_client.closed
    assert fake_client.closed
