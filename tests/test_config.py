import pytest
from pydantic import ValidationError

from korean_vocab.config import Settings

VALID_SECRET = "x" * 32


@pytest.mark.parametrize("secret", ["", "   ", "change-me", "CHANGEME", "short-secret"])
def test_session_secret_is_validated(secret):
    with pytest.raises(ValidationError):
        Settings(session_secret_key=secret, _env_file=None)


def test_production_forces_secure_cookie():
    settings = Settings(session_secret_key=VALID_SECRET, environment="production", _env_file=None)

    assert settings.session_cookie_secure is True
    assert settings.is_development is False


def test_explicit_cookie_flag_is_respected_in_production():
    settings = Settings(
        session_secret_key=VALID_SECRET,
        environment="production",
        session_cookie_secure=False,
        _env_file=None,
    )

    assert settings.session_cookie_secure is False


def test_disabling_session_auth_is_rejected_in_production():
    with pytest.raises(ValidationError):
        Settings(
            session_secret_key=VALID_SECRET,
            environment="production",
            disable_session_auth=True,
            _env_file=None,
        )


def test_cors_origins_are_split_and_deduplicated(monkeypatch):
    monkeypatch.setenv(
        "ALLOWED_CORS_ORIGINS", " https://a.example , https://b.example,https://a.example,, "
    )

    settings = Settings(session_secret_key=VALID_SECRET, _env_file=None)

    assert settings.allowed_cors_origins == ("https://a.example", "https://b.example")


def test_generation_limits_default_to_twenty_per_fifteen_minutes(monkeypatch):
    monkeypatch.delenv("GENERATE_RATE_LIMIT_COUNT", raising=False)
    settings = Settings(session_secret_key=VALID_SECRET, _env_file=None)

    assert settings.generate_rate_limit_count == 20
    assert settings.generate_rate_limit_window_seconds == 900
