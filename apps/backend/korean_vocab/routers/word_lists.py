from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth import get_current_user
from ..logging import logger
from ..models.common import MessageResponse
from ..models.user import User
from ..models.word import ProgressUpdateRequest, Word
from ..models.word_list import WordList, WordListCreateRequest, WordListUpdateRequest
from ..store import AppFirestoreStore, WordListNotFoundError, get_store
from ..store.firestore_store import PUBLIC_LIST_LIMIT

router = APIRouter(prefix="/api/wordlists", tags=["wordlists"])


def _list_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Word list not found")


@router.get("/", response_model=list[WordList], summary="List the caller's word lists")
def list_word_lists(
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> list[WordList]:
    """Word lists owned by the caller, newest first."""
    return store.list_word_lists(user.id)


@router.get("/public", response_model=list[WordList], summary="Popular public word lists")
def list_public_word_lists(
    limit: int = Query(default=PUBLIC_LIST_LIMIT, ge=1, le=100),
    store: AppFirestoreStore = Depends(get_store),
) -> list[WordList]:
    return store.list_public_word_lists(limit)


@router.post("/", response_model=WordList, status_code=status.HTTP_201_CREATED)
def create_word_list(
    payload: WordListCreateRequest,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> WordList:
    """Create a list; every word starts with empty progress and is due immediately."""

    word_list = store.create_word_list(user.id, payload)
    logger.info(
        "word_list_created",
        user_id=user.id,
        list_id=word_list.id,
        total_words=word_list.total_words,
        is_public=word_list.is_public,
    )
    return word_list


@router.get("/{list_id}", response_model=WordList)
def get_word_list(
    list_id: str,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> WordList:
    word_list = store.get_word_list(user.id, list_id)
    if word_list is None:
        raise _list_not_found()
    return word_list


@router.put("/{list_id}", response_model=WordList)
def update_word_list(
    list_id: str,
    payload: WordListUpdateRequest,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> WordList:
    """Partially update a list.

    When ``words`` is sent it replaces the list contents; words that keep
    their ``id`` keep their review progress.
    """

    word_list = store.update_word_list(user.id, list_id, payload)
    if word_list is None:
        raise _list_not_found()
    logger.info("word_list_updated", user_id=user.id, list_id=list_id, total_words=word_list.total_words)
    return word_list


@router.delete("/{list_id}", response_model=MessageResponse)
def delete_word_list(
    list_id: str,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> MessageResponse:
    if not store.delete_word_list(user.id, list_id):
        raise _list_not_found()
    logger.info("word_list_deleted", user_id=user.id, list_id=list_id)
    return MessageResponse(message="Word list deleted")


@router.put(
    "/{list_id}/words/{word_id}/progress",
    response_model=Word,
    summary="Record one review outcome for a word",
)
def update_word_progress(
    list_id: str,
    word_id: str,
    payload: ProgressUpdateRequest,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> Word:
    """Apply a correct/incorrect answer to the word's mastery and reschedule it.

    A missing list, a list owned by someone else and an unknown word id are
    all reported as 404 and leave the stored list untouched.
    """

    try:
        word = store.record_word_review(user.id, list_id, word_id, payload.is_correct)
    except WordListNotFoundError:
        raise _list_not_found() from None
    if word is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Word not found")
    return word
