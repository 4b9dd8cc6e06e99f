from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


def utcnow() -> datetime:
    """Timezone-aware current time; all persisted timestamps are UTC."""

    return datetime.now(UTC)


class GameType(str, Enum):
    """Game modes a review event or session can originate from."""

    flashcard = "flashcard"
    quiz = "quiz"
    fillblank = "fillblank"
    scramble = "scramble"
    matching = "matching"
    sentence = "sentence"


class MessageResponse(BaseModel):
    """Plain acknowledgement payload."""

    model_config = ConfigDict(extra="ignore")

    message: str
    meta: dict[str, Any] | None = None
