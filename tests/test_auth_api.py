from korean_vocab.auth import hash_password, issue_session_token, verify_password
from korean_vocab.config import settings


def test_register_sets_cookie_and_returns_token(client):
    response = client.post(
        "/api/auth/register",
        json={"username": "minji", "email": "Minji@Example.com", "password": "secret123"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["username"] == "minji"
    assert body["user"]["email"] == "minji@example.com"
    assert body["user"]["profile"]["display_name"] == "minji"
    assert "password_hash" not in body["user"]
    assert body["token"]
    assert settings.session_cookie_name in response.cookies


def test_register_rejects_duplicate_username(client, register_user):
    register_user(client, "minji")

    response = client.post(
        "/api/auth/register",
        json={"username": "MINJI", "email": "other@example.com", "password": "secret123"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Username already exists"


def test_register_validates_payload(client):
    response = client.post(
        "/api/auth/register",
        json={"username": "mj", "email": "not-an-email", "password": "123"},
    )

    assert response.status_code == 422


def test_login_with_username_or_email(client, register_user):
    register_user(client, "minji", "secret123")
    client.cookies.clear()

    by_name = client.post("/api/auth/login", json={"username": "minji", "password": "secret123"})
    by_email = client.post("/api/auth/login", json={"email": "minji@example.com", "password": "secret123"})

    assert by_name.status_code == 200
    assert by_email.status_code == 200
    assert by_name.json()["user"]["id"] == by_email.json()["user"]["id"]


def test_login_rejects_wrong_password(client, register_user):
    register_user(client, "minji", "secret123")

    response = client.post("/api/auth/login", json={"login": "minji", "password": "wrong-pass"})

    assert response.status_code == 401


def test_me_accepts_cookie_and_bearer(client, register_user):
    body = register_user(client, "minji")

    with_cookie = client.get("/api/auth/me")
    client.cookies.clear()
    with_bearer = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})

    assert with_cookie.status_code == 200
    assert with_bearer.json()["id"] == body["user"]["id"]


def test_protected_routes_require_a_session(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/wordlists/").status_code == 401
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer forged.token"})
    assert bad.status_code == 401


def test_token_for_deleted_user_is_rejected(client, store):
    token = issue_session_token("usr_missing")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


def test_logout_clears_cookie(client, register_user):
    register_user(client, "minji")

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_update_profile(client, auth_headers):
    response = client.put(
        "/api/auth/me",
        json={"display_name": "민지", "preferences": {"voice_enabled": False}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["profile"]["display_name"] == "민지"
    assert body["preferences"]["voice_enabled"] is False


def test_disabled_session_auth_resolves_default_user(client, monkeypatch):
    monkeypatch.setattr(settings, "disable_session_auth", True)

    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["id"] == settings.default_user_id


def test_password_hashing_round_trip():
    hashed = hash_password("secret123")

    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")
