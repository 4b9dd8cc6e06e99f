from __future__ import annotations

import json
import re
from typing import Any

from ..logging import logger
from ..models.vocabulary import (
    GeneratedWord,
    GenerateVocabularyRequest,
    GenerateVocabularyResponse,
)
from ..providers import LLMProvider

CATEGORY_HINTS: dict[str, str] = {
    "Du lịch": "travel",
    "Ẩm thực": "food and dining",
    "Công việc": "work and career",
    "Gia đình": "family and relationships",
    "Học tập": "study and education",
    "Y tế": "health and medical",
    "Thể thao": "sports and exercise",
    "Giải trí": "entertainment and hobbies",
    "Mua sắm": "shopping and commerce",
    "Giao thông": "transportation and traffic",
}

DIFFICULTY_HINTS: dict[str, str] = {
    "Cơ bản": "beginner",
    "Trung bình": "intermediate",
    "Nâng cao": "advanced",
}

_HANGUL = re.compile(r"[가-힣]")
_FENCE = re.compile(r"```(?:json)?")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
# Line shapes seen when the model ignores the JSON instruction, tried in order.
_LINE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"([가-힣]+)\s*-\s*([^-\n]+?)\s*-\s*([a-zA-Z\s]+)"),
    re.compile(
        r'"korean":\s*"([^"]+)".*?"(?:vietnamese|translation)":\s*"([^"]+)".*?"pronunciation":\s*"([^"]+)"'
    ),
    re.compile(r"([가-힣]+):\s*([^-\n(]+?)\s*\(([^)]+)\)"),
    re.compile(r"\d+\.\s*([가-힣]+)\s*-\s*([^-\n]+?)\s*-\s*([a-zA-Z\s]+)"),
)


class VocabularyGenerationError(RuntimeError):
    """Generation produced nothing usable."""

    def __init__(self, reason_code: str, message: str, diagnostics: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.reason_code = reason_code
        self.diagnostics = diagnostics or {}


def build_prompt(category: str, difficulty: str, count: int) -> str:
    english_category = CATEGORY_HINTS.get(category, category)
    english_difficulty = DIFFICULTY_HINTS.get(difficulty, difficulty)
    return (
        f'Tạo {count} từ vựng tiếng Hàn về chủ đề "{category}" ({english_category}) '
        f"ở cấp độ {difficulty} ({english_difficulty}).\n\n"
        "Yêu cầu:\n"
        "- Mỗi từ gồm: từ tiếng Hàn (한글), nghĩa tiếng Việt, phát âm romanization\n"
        f"- Từ vựng thông dụng, phù hợp cấp độ {difficulty}\n"
        f"- Liên quan trực tiếp đến chủ đề {category}\n\n"
        "Trả về JSON array chính xác theo format:\n"
        "[\n"
        '  {"korean": "밥", "vietnamese": "cơm", "pronunciation": "bap"},\n'
        '  {"korean": "물", "vietnamese": "nước", "pronunciation": "mul"}\n'
        "]\n\n"
        "CHỈ trả về JSON array, KHÔNG có text khác."
    )


def parse_json_words(text: str) -> list[Any]:
    """Parse the first JSON array in ``text`` after removing code fences.

    Raises ``ValueError`` when no array can be decoded.
    """

    cleaned = _FENCE.sub("", text or "").strip()
    match = _JSON_ARRAY.search(cleaned)
    if match:
        cleaned = match.group(0)
    parsed = json.loads(cleaned)
    if not isinstance(parsed, list):
        raise ValueError("LLM output is not a JSON array")
    return parsed


def extract_words_from_text(text: str) -> list[dict[str, str]]:
    """Best-effort line parser for non-JSON output; may return an empty list."""

    words: list[dict[str, str]] = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        for pattern in _LINE_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            korean, translation, pronunciation = (group.strip() for group in match.groups()[:3])
            if korean and translation and pronunciation and _HANGUL.search(korean):
                words.append(
                    {"korean": korean, "translation": translation, "pronunciation": pronunciation}
                )
                break
    return words


def _field(item: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def validate_words(candidates: list[Any], count: int) -> list[GeneratedWord]:
    """Keep complete entries whose Korean text contains Hangul, trimmed and capped at ``count``."""

    valid: list[GeneratedWord] = []
    for item in candidates:
        if not isinstance(item, dict):
            continue
        korean = _field(item, "korean")
        translation = _field(item, "translation", "vietnamese")
        pronunciation = _field(item, "pronunciation")
        if not (korean and translation and pronunciation) or not _HANGUL.search(korean):
            logger.debug("generated_word_rejected", korean=korean or None)
            continue
        valid.append(GeneratedWord(korean=korean, translation=translation, pronunciation=pronunciation))
        if len(valid) >= count:
            break
    return valid


class VocabularyGenerateFlow:
    """Ask the LLM for a themed word batch and turn its answer into validated words."""

    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    def run(self, req: GenerateVocabularyRequest) -> GenerateVocabularyResponse:
        prompt = build_prompt(req.category, req.difficulty, req.count)
        text = self._llm.complete(prompt)
        try:
            candidates = parse_json_words(text)
            source = "json"
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError subclass.
            logger.info("vocabulary_json_parse_failed", error=str(exc)[:200], content_chars=len(text or ""))
            candidates = extract_words_from_text(text)
            source = "text"

        words = validate_words(candidates, req.count)
        if not words:
            logger.warning(
                "vocabulary_generation_empty",
                category=req.category,
                difficulty=req.difficulty,
                source=source,
                candidates=len(candidates),
            )
            raise VocabularyGenerationError(
                "NO_VALID_WORDS",
                "No valid vocabulary could be generated",
                {"source": source, "candidates": len(candidates), "preview": (text or "")[:200]},
            )

        logger.info(
            "vocabulary_generated",
            category=req.category,
            difficulty=req.difficulty,
            requested=req.count,
            produced=len(words),
            source=source,
        )
        return GenerateVocabularyResponse(
            words=words,
            category=req.category,
            difficulty=req.difficulty,
            count=len(words),
            requested_count=req.count,
        )
