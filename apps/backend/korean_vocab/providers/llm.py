"""LLM providers used for vocabulary generation."""

from __future__ import annotations

import contextvars
import hashlib
import time
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any

from openai import OpenAI

from ..config import settings
from ..logging import logger
from . import _get_llm_executor, _get_llm_instance, _reset_llm_executor, _set_llm_instance

_UNSUPPORTED_MARKERS = ("unsupported", "only the default", "not supported")


class LLMError(RuntimeError):
    """An LLM call failed after all retries.

    ``reason_code`` is one of TIMEOUT, RATE_LIMIT, AUTH, PARAM_UNSUPPORTED
    or UNKNOWN.
    """

    def __init__(self, reason_code: str, error_type: str, detail: str) -> None:
        self.reason_code = reason_code
        self.error_type = error_type
        self.detail = detail
        base = "LLM timeout" if reason_code == "TIMEOUT" else "LLM failure"
        super().__init__(
            f"{base} (reason_code={reason_code}, error_type={error_type}, detail={detail[:256]})"
        )


class LLMProvider:
    """Minimal interface every LLM client implements."""

    name = "base"
    model = "none"

    def complete(self, prompt: str) -> str:  # pragma: no cover - interface definition
        raise NotImplementedError


class _LocalEchoLLM(LLMProvider):
    """Offline provider; always answers with an empty completion."""

    name = "local"
    model = "echo"

    def complete(self, prompt: str) -> str:
        logger.info("llm_complete_call", provider=self.name, model=self.model, prompt_chars=len(prompt))
        return ""


class _OpenAILLM(LLMProvider):  # pragma: no cover - requires network access
    """OpenAI Responses API client."""

    name = "openai"

    def __init__(self, *, api_key: str, model: str, temperature: float | None = None) -> None:
        self._client = OpenAI(api_key=api_key, max_retries=0)
        self.model = model
        self._temperature = 0.7 if temperature is None else float(max(0.0, min(1.0, temperature)))

    @staticmethod
    def _extract_text(resp: Any) -> str:
        text = getattr(resp, "output_text", None)
        if isinstance(text, str):
            return text.strip()
        return (str(resp) or "").strip()

    def _create(self, prompt: str, *, include_temperature: bool) -> Any:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": prompt,
            "max_output_tokens": int(settings.llm_max_tokens),
            "timeout": settings.llm_timeout_ms / 1000.0,
        }
        if include_temperature:
            kwargs["temperature"] = self._temperature
        return self._client.responses.create(**kwargs)

    def complete(self, prompt: str) -> str:
        logger.info("llm_complete_call", provider=self.name, model=self.model, prompt_chars=len(prompt))
        try:
            resp = self._create(prompt, include_temperature=True)
        except Exception as exc:
            low = (str(exc) or "").lower()
            if "temperature" not in low or not any(m in low for m in _UNSUPPORTED_MARKERS):
                raise
            # Reasoning models reject sampling parameters.
            logger.info(
                "llm_complete_retry_without_temperature",
                provider=self.name,
                model=self.model,
                reason=str(exc)[:200],
            )
            resp = self._create(prompt, include_temperature=False)
        content = self._extract_text(resp)
        logger.info(
            "llm_complete_result",
            provider=self.name,
            model=self.model,
            content_chars=len(content),
            content_sha256=hashlib.sha256(content.encode("utf-8", errors="ignore")).hexdigest(),
        )
        return content


def classify_llm_error(exc: BaseException | None) -> str:
    """Map an exception raised by a provider to a ``reason_code``."""

    if exc is None:
        return "UNKNOWN"
    low = (str(exc) or "").lower()
    etype = type(exc).__name__.lower()
    if isinstance(exc, FuturesTimeout) or "timeout" in low or "timeout" in etype:
        return "TIMEOUT"
    if "rate limit" in low or "too many requests" in low or "429" in low or "ratelimit" in etype:
        return "RATE_LIMIT"
    if (
        "auth" in low
        or "invalid api key" in low
        or "unauthorized" in low
        or "401" in low
        or "authentication" in etype
    ):
        return "AUTH"
    if "unexpected keyword argument" in low or (
        "unsupported parameter" in low or "not supported" in low
    ):
        return "PARAM_UNSUPPORTED"
    return "UNKNOWN"


class _PolicyLLM(LLMProvider):
    """Runs a provider with a per-attempt timeout and a bounded number of attempts."""

    def __init__(self, inner: LLMProvider) -> None:
        self._inner = inner
        self.name = inner.name
        self.model = inner.model

    def complete(self, prompt: str) -> str:
        attempts = max(1, settings.llm_max_retries)
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            ctx = contextvars.copy_context()
            future = _get_llm_executor().submit(ctx.run, self._inner.complete, prompt)
            try:
                result = future.result(timeout=settings.llm_timeout_ms / 1000.0)
            except Exception as exc:
                last_exc = exc
                future.cancel()
                logger.info(
                    "llm_complete_error",
                    attempt=attempt,
                    retries=attempts,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                if attempt < attempts:
                    time.sleep(0.1 * attempt)
                continue
            if result == "":
                logger.info("llm_complete_empty", attempt=attempt, retries=attempts)
            return result

        reason_code = classify_llm_error(last_exc)
        logger.warning(
            "llm_complete_failed_all_retries",
            reason_code=reason_code,
            error=str(last_exc) if last_exc else None,
            error_type=type(last_exc).__name__ if last_exc else None,
        )
        raise LLMError(
            reason_code,
            type(last_exc).__name__ if last_exc else "None",
            str(last_exc) if last_exc else "",
        )


def is_llm_configured() -> bool:
    """True when generation can reach a provider without falling back."""

    provider = (settings.llm_provider or "").strip().lower()
    if provider == "openai":
        return bool(settings.openai_api_key)
    return provider in {"", "local"} and not settings.strict_mode


def get_llm_provider() -> LLMProvider:
    """Return the configured LLM client wrapped with the retry policy.

    Strict mode refuses to fall back to the local provider.
    """

    instance = _get_llm_instance()
    if instance is not None:
        return instance

    provider = (settings.llm_provider or "").strip().lower()
    reason: str | None = None
    if provider == "openai" and settings.openai_api_key:
        wrapped = _PolicyLLM(
            _OpenAILLM(
                api_key=settings.openai_api_key,
                model=settings.llm_model,
                temperature=settings.llm_temperature,
            )
        )
        logger.info("llm_provider_select", provider="openai", model=wrapped.model)
    else:
        if provider == "openai":
            reason = "missing_api_key"
        elif provider not in {"", "local"}:
            reason = "unknown_provider"
        if settings.strict_mode:
            raise RuntimeError(
                f"LLM provider '{provider or 'local'}' is not usable in strict mode ({reason or 'local'})"
            )
        logger.info("llm_provider_select", provider="local", reason=reason, requested=provider)
        wrapped = _PolicyLLM(_LocalEchoLLM())

    _set_llm_instance(wrapped)
    return wrapped


def shutdown_providers() -> None:
    """Release the shared thread pool and the LLM singleton."""

    executor = _reset_llm_executor()
    if executor is not None:
        executor.shutdown(wait=False, cancel_futures=True)
    _set_llm_instance(None)
