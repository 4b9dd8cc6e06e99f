from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from .common import GameType
from .user import UserProfile

MASTERY_ACCURACY_THRESHOLD = 0.8


class WordReviewed(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    word_id: str = Field(validation_alias=AliasChoices("word_id", "wordId"))
    is_correct: bool = Field(validation_alias=AliasChoices("is_correct", "isCorrect"))
    time_spent: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("time_spent", "timeSpent")
    )


class GameResults(BaseModel):
    """Outcome of one game; ``accuracy`` is derived when the client omits it."""

    model_config = ConfigDict(populate_by_name=True)

    total_questions: int = Field(
        ge=0, validation_alias=AliasChoices("total_questions", "totalQuestions")
    )
    correct_answers: int = Field(
        ge=0, validation_alias=AliasChoices("correct_answers", "correctAnswers")
    )
    time_spent: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("time_spent", "timeSpent")
    )
    accuracy: float | None = Field(default=None, ge=0.0, le=1.0)
    words_reviewed: list[WordReviewed] = Field(
        default_factory=list,
        validation_alias=AliasChoices("words_reviewed", "wordsReviewed"),
    )

    @model_validator(mode="after")
    def _derive_accuracy(self) -> "GameResults":
        if self.correct_answers > self.total_questions:
            raise ValueError("correct_answers must not exceed total_questions")
        if self.accuracy is None:
            self.accuracy = (
                self.correct_answers / self.total_questions if self.total_questions else 0.0
            )
        return self

    @property
    def correctly_reviewed(self) -> int:
        return sum(1 for item in self.words_reviewed if item.is_correct)


class GameSessionCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    word_list: str = Field(
        min_length=1, validation_alias=AliasChoices("word_list", "wordList")
    )
    game_type: GameType = Field(validation_alias=AliasChoices("game_type", "gameType"))
    results: GameResults
    completed: bool = False


class GameSession(BaseModel):
    id: str
    user: str
    word_list: str
    game_type: GameType
    results: GameResults
    completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserStatsResponse(BaseModel):
    profile: UserProfile
    total_sessions: int
    average_accuracy: float
    recent_sessions: list[GameSession]
