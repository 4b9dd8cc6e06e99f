from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..auth import get_current_user
from ..logging import logger
from ..models.game_session import (
    MASTERY_ACCURACY_THRESHOLD,
    GameSession,
    GameSessionCreateRequest,
    UserStatsResponse,
)
from ..models.user import User
from ..models.word import DueWord
from ..store import AppFirestoreStore, get_store

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.post("/session", response_model=GameSession, status_code=status.HTTP_201_CREATED)
def record_game_session(
    payload: GameSessionCreateRequest,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> GameSession:
    """Store a finished game and update the learner's profile counters.

    ``mastered_words`` only grows when the session accuracy reaches the
    mastery threshold; it then grows by the number of correctly reviewed words.
    """

    session = store.create_game_session(user.id, payload)
    accuracy = session.results.accuracy or 0.0
    mastered = (
        payload.results.correctly_reviewed if accuracy >= MASTERY_ACCURACY_THRESHOLD else 0
    )
    store.record_session_result(user.id, mastered)
    logger.info(
        "game_session_recorded",
        user_id=user.id,
        session_id=session.id,
        game_type=session.game_type.value,
        accuracy=accuracy,
        mastered_increment=mastered,
    )
    return session


@router.get("/user", response_model=UserStatsResponse)
def user_stats(
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> UserStatsResponse:
    current = store.get_user(user.id) or user
    return UserStatsResponse(
        profile=current.profile,
        total_sessions=store.count_game_sessions(user.id),
        average_accuracy=store.average_accuracy(user.id),
        recent_sessions=store.list_recent_game_sessions(user.id),
    )


@router.get("/review", response_model=list[DueWord])
def words_due_for_review(
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> list[DueWord]:
    """Words across the caller's lists whose next review time has passed."""
    return store.list_due_words(user.id)
