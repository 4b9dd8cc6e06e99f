from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import settings
from ..flows.vocabulary_generate import VocabularyGenerateFlow, VocabularyGenerationError
from ..logging import logger
from ..middleware import generation_rate_limit
from ..models.vocabulary import GenerateVocabularyRequest, GenerateVocabularyResponse
from ..providers import LLMError, LLMProvider, get_llm_provider, is_llm_configured

router = APIRouter(prefix="/api", tags=["vocabulary"])

_LLM_ERROR_STATUS: dict[str, tuple[int, str]] = {
    "TIMEOUT": (status.HTTP_504_GATEWAY_TIMEOUT, "LLM request timed out"),
    "RATE_LIMIT": (status.HTTP_429_TOO_MANY_REQUESTS, "LLM provider rate limited"),
    "AUTH": (status.HTTP_502_BAD_GATEWAY, "LLM provider authentication failed"),
}


def get_llm() -> LLMProvider:
    """Dependency returning the configured provider, 503 when there is none."""

    if not is_llm_configured():
        logger.warning("llm_not_configured", provider=settings.llm_provider)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "LLM provider is not configured",
                "reason_code": "LLM_NOT_CONFIGURED",
                "hint": "Set OPENAI_API_KEY or LLM_PROVIDER=local with STRICT_MODE=false.",
            },
        )
    return get_llm_provider()


def _llm_http_error(exc: LLMError) -> HTTPException:
    status_code, message = _LLM_ERROR_STATUS.get(
        exc.reason_code, (status.HTTP_502_BAD_GATEWAY, "LLM request failed")
    )
    return HTTPException(
        status_code=status_code,
        detail={"message": message, "reason_code": exc.reason_code},
    )


@router.post(
    "/generate-vocabulary",
    response_model=GenerateVocabularyResponse,
    dependencies=[Depends(generation_rate_limit)],
    summary="Generate a themed Korean vocabulary batch",
)
def generate_vocabulary(
    payload: GenerateVocabularyRequest, llm: LLMProvider = Depends(get_llm)
) -> GenerateVocabularyResponse:
    try:
        return VocabularyGenerateFlow(llm).run(payload)
    except LLMError as exc:
        raise _llm_http_error(exc) from exc
    except VocabularyGenerationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": str(exc),
                "reason_code": exc.reason_code,
                "diagnostics": exc.diagnostics if settings.is_development else {},
            },
        ) from exc


@router.get("/test-llm", summary="Round-trip a short prompt through the LLM")
def test_llm(llm: LLMProvider = Depends(get_llm)) -> dict[str, object]:
    try:
        text = llm.complete('Say "Hello" in Korean with pronunciation')
    except LLMError as exc:
        raise _llm_http_error(exc) from exc
    return {
        "success": True,
        "provider": llm.name,
        "model": llm.model,
        "response": text,
    }
