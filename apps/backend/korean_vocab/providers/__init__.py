"""Shared LLM provider state and the public provider API."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

# LLM singleton; calls with overrides build a fresh instance instead.
_LLM_INSTANCE: Any | None = None
# Pool used to run LLM calls under a timeout. Recreated after shutdown.
_llm_executor: ThreadPoolExecutor | None = None


def _get_llm_instance() -> Any | None:
    return _LLM_INSTANCE


def _set_llm_instance(instance: Any | None) -> None:
    """Replace the LLM singleton; tests reset it to ``None``."""

    global _LLM_INSTANCE
    _LLM_INSTANCE = instance


def _get_llm_executor() -> ThreadPoolExecutor:
    global _llm_executor
    if _llm_executor is None:
        _llm_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="llm")
    return _llm_executor


def _reset_llm_executor() -> ThreadPoolExecutor | None:
    global _llm_executor
    executor, _llm_executor = _llm_executor, None
    return executor


from .llm import (  # noqa: E402
    LLMError,
    LLMProvider,
    get_llm_provider,
    is_llm_configured,
    shutdown_providers,
)

__all__ = [
    "LLMError",
    "LLMProvider",
    "get_llm_provider",
    "is_llm_configured",
    "shutdown_providers",
]
