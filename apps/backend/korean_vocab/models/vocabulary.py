from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_GENERATE_COUNT = 20
MAX_GENERATE_COUNT = 50


class GenerateVocabularyRequest(BaseModel):
    """Topic and level for an AI generated vocabulary batch."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"category": "Du lịch", "difficulty": "Cơ bản", "count": 10},
            ]
        }
    )

    category: str = Field(min_length=1, max_length=64)
    difficulty: str = Field(min_length=1, max_length=32)
    count: int = Field(default=DEFAULT_GENERATE_COUNT, ge=1, le=MAX_GENERATE_COUNT)


class GeneratedWord(BaseModel):
    korean: str
    translation: str
    pronunciation: str


class GenerateVocabularyResponse(BaseModel):
    success: bool = True
    words: list[GeneratedWord]
    category: str
    difficulty: str
    count: int
    requested_count: int


class SaveDataRequest(BaseModel):
    type: str = Field(min_length=1, max_length=64)
    data: Any


class SaveDataResponse(BaseModel):
    success: bool = True
    message: str
    created: bool


class LoadDataMetadata(BaseModel):
    type: str
    last_updated: datetime | None = None
    data_size: int


class LoadDataResponse(BaseModel):
    success: bool = True
    data: Any
    metadata: LoadDataMetadata
