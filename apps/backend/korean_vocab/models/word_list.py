from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .word import Word, WordInput, WordUpsert

DEFAULT_LIST_CATEGORY = "일반"
DEFAULT_LIST_DIFFICULTY = "mixed"


class WordListStats(BaseModel):
    total_students: int = Field(default=0, ge=0)
    average_rating: float = Field(default=0.0, ge=0.0)
    total_ratings: int = Field(default=0, ge=0)


class WordList(BaseModel):
    """A user's ordered collection of words."""

    id: str
    title: str
    description: str | None = None
    category: str = DEFAULT_LIST_CATEGORY
    words: list[Word] = Field(default_factory=list)
    author: str
    author_username: str | None = None
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)
    difficulty: str = DEFAULT_LIST_DIFFICULTY
    total_words: int = Field(default=0, ge=0)
    stats: WordListStats = Field(default_factory=WordListStats)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WordListCreateRequest(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "title": "여행 단어",
                    "category": "Du lịch",
                    "words": [
                        {"korean": "공항", "translation": "sân bay", "pronunciation": "gonghang"}
                    ],
                    "is_public": False,
                    "tags": ["travel"],
                }
            ]
        },
    )

    title: str = Field(min_length=1, max_length=120)
    description: str | None = None
    category: str | None = None
    words: list[WordInput] = Field(default_factory=list)
    is_public: bool = Field(
        default=False, validation_alias=AliasChoices("is_public", "isPublic")
    )
    tags: list[str] = Field(default_factory=list)
    difficulty: str | None = None


class WordListUpdateRequest(BaseModel):
    """Partial update; fields left out keep their stored values."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    category: str | None = None
    words: list[WordUpsert] | None = None
    is_public: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_public", "isPublic")
    )
    tags: list[str] | None = None
    difficulty: str | None = None
