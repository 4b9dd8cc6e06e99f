import json

from korean_vocab.config import settings
from korean_vocab.logging import configure_logging, logger


def _last_event(capsys) -> dict:
    lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
    return json.loads(lines[-1])


def test_logs_are_single_line_json_with_level_and_timestamp(capsys):
    configure_logging()

    logger.info("word_review_recorded", list_id="wl_1", mastery_level=0.2, note="공항")

    event = _last_event(capsys)
    assert event["event"] == "word_review_recorded"
    assert event["level"] == "info"
    assert event["list_id"] == "wl_1"
    assert event["note"] == "공항"
    assert "timestamp" in event


def test_sensitive_fields_and_known_secrets_are_masked(capsys, monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test-1234567890abcdef")
    configure_logging()

    logger.warning(
        "llm_complete_error",
        password="hunter2",
        token="abcdefghijklmnop",
        error="request failed for key sk-test-1234567890abcdef",
        nested={"api_key": "sk-test-1234567890abcdef"},
    )

    event = _last_event(capsys)
    assert event["password"] == "***"
    assert event["token"] == "abcd…mnop"
    assert "sk-test-1234567890abcdef" not in event["error"]
    assert event["nested"]["api_key"] != "sk-test-1234567890abcdef"


def test_identifier_keys_stay_readable_while_cookies_are_masked(capsys):
    configure_logging()

    logger.info("rate_limited", bucket_key="ip:203.0.113.7", session_cookie="cookie-value-123456")

    event = _last_event(capsys)
    assert event["bucket_key"] == "ip:203.0.113.7"
    assert event["session_cookie"] == "cook…3456"
