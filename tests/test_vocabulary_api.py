import json

import pytest
from fastapi.testclient import TestClient

from korean_vocab.config import settings
from korean_vocab.middleware import GenerationRateLimiter, generation_rate_limit
from korean_vocab.providers import LLMError, LLMProvider
from korean_vocab.routers.vocabulary import get_llm


class _StubLLM(LLMProvider):
    name = "stub"
    model = "stub-model"

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def use_llm(app):
    def _install(llm: LLMProvider) -> LLMProvider:
        app.dependency_overrides[get_llm] = lambda: llm
        return llm

    yield _install
    app.dependency_overrides.clear()


def test_generate_vocabulary_parses_fenced_json(client, use_llm):
    words = [
        {"korean": "비행기", "vietnamese": "máy bay", "pronunciation": "bihaenggi"},
        {"korean": "airport", "vietnamese": "sân bay", "pronunciation": "x"},
        {"korean": " 기차 ", "vietnamese": " tàu hỏa ", "pronunciation": " gicha "},
        {"korean": "버스", "vietnamese": "xe buýt", "pronunciation": "beoseu"},
    ]
    llm = use_llm(_StubLLM("```json\n" + json.dumps(words, ensure_ascii=False) + "\n```"))

    response = client.post(
        "/api/generate-vocabulary",
        json={"category": "Giao thông", "difficulty": "Cơ bản", "count": 2},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["words"] == [
        {"korean": "비행기", "translation": "máy bay", "pronunciation": "bihaenggi"},
        {"korean": "기차", "translation": "tàu hỏa", "pronunciation": "gicha"},
    ]
    assert body["count"] == 2
    assert body["requested_count"] == 2
    assert "transportation and traffic" in llm.prompts[0]
    assert "beginner" in llm.prompts[0]


def test_generate_vocabulary_falls_back_to_line_parser(client, use_llm):
    use_llm(_StubLLM("Here you go:\n1. 사과 - quả táo - sagwa\n바나나: quả chuối (banana)\n"))

    response = client.post(
        "/api/generate-vocabulary", json={"category": "Ẩm thực", "difficulty": "Trung bình"}
    )

    assert response.status_code == 200
    assert [word["korean"] for word in response.json()["words"]] == ["사과", "바나나"]


def test_generate_vocabulary_without_valid_words_is_502(client, use_llm):
    use_llm(_StubLLM("I cannot help with that."))

    response = client.post(
        "/api/generate-vocabulary", json={"category": "Du lịch", "difficulty": "Cơ bản"}
    )

    assert response.status_code == 502
    assert response.json()["detail"]["reason_code"] == "NO_VALID_WORDS"


@pytest.mark.parametrize(
    ("reason_code", "status_code"),
    [("TIMEOUT", 504), ("RATE_LIMIT", 429), ("AUTH", 502), ("UNKNOWN", 502)],
)
def test_generate_vocabulary_maps_llm_failures(client, use_llm, reason_code, status_code):
    use_llm(_StubLLM(error=LLMError(reason_code, "RuntimeError", "boom")))

    response = client.post(
        "/api/generate-vocabulary", json={"category": "Du lịch", "difficulty": "Cơ bản"}
    )

    assert response.status_code == status_code
    assert response.json()["detail"]["reason_code"] == reason_code


def test_generate_vocabulary_validates_count(client, use_llm):
    use_llm(_StubLLM("[]"))

    response = client.post(
        "/api/generate-vocabulary", json={"category": "Du lịch", "difficulty": "Cơ bản", "count": 51}
    )

    assert response.status_code == 422


def test_unconfigured_provider_is_503(client, monkeypatch):
    monkeypatch.setattr(settings, "llm_provider", "openai")
    monkeypatch.setattr(settings, "openai_api_key", None)

    response = client.post(
        "/api/generate-vocabulary", json={"category": "Du lịch", "difficulty": "Cơ bản"}
    )

    assert response.status_code == 503
    assert response.json()["detail"]["reason_code"] == "LLM_NOT_CONFIGURED"


def test_local_provider_reports_no_valid_words(client):
    response = client.post(
        "/api/generate-vocabulary", json={"category": "Du lịch", "difficulty": "Cơ bản"}
    )

    assert response.status_code == 502
    assert response.json()["detail"]["reason_code"] == "NO_VALID_WORDS"


def test_generation_rate_limit_outside_development(app, use_llm, monkeypatch):
    monkeypatch.setattr(settings, "environment", "staging")
    app.dependency_overrides[generation_rate_limit] = GenerationRateLimiter(capacity=2, window_seconds=900)
    use_llm(_StubLLM('[{"korean": "물", "translation": "nước", "pronunciation": "mul"}]'))
    payload = {"category": "Ẩm thực", "difficulty": "Cơ bản", "count": 1}

    with TestClient(app) as client:
        statuses = [client.post("/api/generate-vocabulary", json=payload).status_code for _ in range(3)]
        limited = client.post("/api/generate-vocabulary", json=payload)

    assert statuses == [200, 200, 429]
    assert limited.json()["detail"]["reason_code"] == "GENERATION_RATE_LIMIT"
    assert int(limited.headers["Retry-After"]) > 0


def test_test_llm_endpoint(client, use_llm):
    use_llm(_StubLLM("안녕하세요 (annyeonghaseyo)"))

    response = client.get("/api/test-llm")

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "provider": "stub",
        "model": "stub-model",
        "response": "안녕하세요 (annyeonghaseyo)",
    }
