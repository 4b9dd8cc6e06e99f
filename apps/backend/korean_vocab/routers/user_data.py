from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth import get_current_user
from ..logging import logger
from ..models.user import User
from ..models.vocabulary import LoadDataMetadata, LoadDataResponse, SaveDataRequest, SaveDataResponse
from ..store import AppFirestoreStore, DocumentExistsError, get_store

router = APIRouter(prefix="/api", tags=["user-data"])


@router.post("/save-data", response_model=SaveDataResponse)
def save_data(
    payload: SaveDataRequest,
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> SaveDataResponse:
    """Store a snapshot under ``(user, type)``, replacing the previous one.

    The creation timestamp of an existing snapshot is preserved.
    """

    if payload.data is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing data in request body")

    created = False
    if store.update_user_data(user.id, payload.type, payload.data) is None:
        try:
            store.create_user_data(user.id, payload.type, payload.data)
            created = True
        except DocumentExistsError:
            # Another request created it between the two calls.
            store.update_user_data(user.id, payload.type, payload.data)

    logger.info("user_data_saved", user_id=user.id, data_type=payload.type, created=created)
    return SaveDataResponse(
        message=f"Data type '{payload.type}' saved successfully",
        created=created,
    )


@router.get("/load-data", response_model=LoadDataResponse)
def load_data(
    data_type: str = Query(alias="type", min_length=1, max_length=64),
    user: User = Depends(get_current_user),
    store: AppFirestoreStore = Depends(get_store),
) -> LoadDataResponse:
    record = store.get_user_data(user.id, data_type)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No data found for type '{data_type}'",
        )
    data = record.get("data")
    return LoadDataResponse(
        data=data,
        metadata=LoadDataMetadata(
            type=record.get("type") or data_type,
            last_updated=record.get("updated_at"),
            data_size=len(json.dumps(data, ensure_ascii=False, separators=(",", ":"))),
        ),
    )
