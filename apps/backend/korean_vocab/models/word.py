from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .common import GameType


class WordExample(BaseModel):
    """Example sentence pair attached to a word."""

    model_config = ConfigDict(populate_by_name=True)

    korean: str
    translation: str = Field(
        validation_alias=AliasChoices("translation", "vietnamese"),
    )


class WordProgress(BaseModel):
    """Per-word spaced-repetition state.

    ``mastery_level`` is a continuous score in [0, 5]; ``next_review`` is
    derived from it by :func:`korean_vocab.srs.apply_review` and never set
    on its own.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "correct_count": 3,
                    "incorrect_count": 1,
                    "last_reviewed": "2024-05-01T09:00:00+00:00",
                    "next_review": "2024-05-04T09:00:00+00:00",
                    "mastery_level": 1.4,
                }
            ]
        }
    )

    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)
    last_reviewed: datetime | None = None
    next_review: datetime | None = None
    mastery_level: float = Field(default=0.0, ge=0.0, le=5.0)

    @field_validator("last_reviewed", "next_review")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive timestamps are stored as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class WordInput(BaseModel):
    """Word payload accepted when creating or replacing list contents.

    Older clients send ``word``/``meaning`` or ``vietnamese``; those are
    accepted as aliases of ``korean``/``translation``.
    """

    model_config = ConfigDict(populate_by_name=True)

    korean: str = Field(
        min_length=1,
        validation_alias=AliasChoices("korean", "word", "korean_text"),
    )
    translation: str = Field(
        min_length=1,
        validation_alias=AliasChoices("translation", "vietnamese", "meaning"),
    )
    pronunciation: str | None = None
    difficulty: int = Field(default=1, ge=1, le=5)
    category: str | None = None
    examples: list[WordExample] = Field(default_factory=list)


class WordUpsert(WordInput):
    """Word payload used by list updates: an ``id`` keeps the stored progress.

    Progress is never accepted from clients; it only changes through reviews.
    """

    id: str | None = None


class Word(BaseModel):
    id: str
    korean: str
    translation: str
    pronunciation: str | None = None
    difficulty: int = Field(default=1, ge=1, le=5)
    category: str | None = None
    examples: list[WordExample] = Field(default_factory=list)
    progress: WordProgress = Field(default_factory=WordProgress)


class ProgressUpdateRequest(BaseModel):
    """One review outcome for a single word."""

    model_config = ConfigDict(populate_by_name=True)

    is_correct: bool = Field(validation_alias=AliasChoices("is_correct", "isCorrect"))
    game_type: GameType | None = Field(
        default=None, validation_alias=AliasChoices("game_type", "gameType")
    )


class DueWord(Word):
    """Word due for review, tagged with the list it belongs to."""

    list_id: str
    list_title: str
