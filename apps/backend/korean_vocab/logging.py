"""Logging utilities and sanitisation helpers.

structlog is configured once per process. Events that carry passwords, session
tokens or API keys are masked here so secrets never reach the log sink.
"""

from typing import Any

import logging
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


_SENSITIVE_KEYWORDS = ("api_key", "token", "secret", "authorization", "password", "cookie")
_MASK_PLACEHOLDER = "***"


def _mask_secret_value(raw: object) -> str:
    """Return a masked representation of a secret-like value.

    Short values collapse to ``***``; longer ones keep the first and last four
    characters only.
    """

    if raw is None:
        return _MASK_PLACEHOLDER
    text = str(raw).strip()
    if not text:
        return _MASK_PLACEHOLDER
    if len(text) <= 8:
        return _MASK_PLACEHOLDER
    return f"{text[:4]}…{text[-4:]}"


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(keyword in lowered for keyword in _SENSITIVE_KEYWORDS)


def _mask_known_literals(value: str, known_secrets: tuple[str, ...]) -> str:
    masked = value
    for secret in known_secrets:
        if not secret:
            continue
        masked = masked.replace(secret, _mask_secret_value(secret))
    return masked


def _sanitize_event_dict(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask sensitive fields before rendering a log event.

    Values under keys such as ``password`` or ``token`` are masked, and known
    secret literals embedded in free text are replaced. Nested dicts are
    handled recursively.
    """

    known_secrets: tuple[str, ...] = tuple(
        secret
        for secret in (settings.openai_api_key, settings.session_secret_key)
        if secret
    )

    def _sanitize_value(value: Any, key_hint: str | None = None) -> Any:
        if isinstance(value, dict):
            return {k: _sanitize_value(v, k) for k, v in value.items()}
        if isinstance(value, str):
            cleaned = _mask_known_literals(value, known_secrets)
            if key_hint and _is_sensitive_key(key_hint):
                return _mask_secret_value(cleaned)
            return cleaned
        if key_hint and _is_sensitive_key(key_hint):
            return _mask_secret_value(value)
        return value

    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        event_dict[key] = _sanitize_value(value, str(key))
    return event_dict


def configure_logging() -> None:
    """Configure structlog for application-wide JSON logging.

    The stdlib root logger is reset to a bare ``%(message)s`` format so the
    JSON rendered by structlog is emitted without prefixes.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            _sanitize_event_dict,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
