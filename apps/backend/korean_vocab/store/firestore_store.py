from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from google.api_core import exceptions as gexc
from google.cloud import firestore

from .. import srs
from ..id_factory import (
    generate_game_session_id,
    generate_user_id,
    generate_word_id,
    generate_word_list_id,
    user_data_document_id,
)
from ..logging import logger
from ..models.common import utcnow
from ..models.game_session import GameSession, GameSessionCreateRequest
from ..models.user import ProfileUpdateRequest, User, UserPreferences, UserProfile
from ..models.word import DueWord, Word, WordInput, WordUpsert
from ..models.word_list import (
    DEFAULT_LIST_CATEGORY,
    DEFAULT_LIST_DIFFICULTY,
    WordList,
    WordListCreateRequest,
    WordListStats,
    WordListUpdateRequest,
)
from .common import extract_count_from_aggregation, normalize_non_negative_int, now_iso
from .errors import DocumentExistsError, DuplicateUserError, StoreError, WordListNotFoundError

PUBLIC_LIST_LIMIT = 20
RECENT_SESSION_LIMIT = 10


@contextmanager
def _translate_errors(operation: str, **log_fields: Any) -> Iterator[None]:
    """Re-raise Google API failures as :class:`StoreError` after logging them."""

    try:
        yield
    except gexc.GoogleAPIError as exc:
        logger.error(
            "firestore_operation_failed",
            operation=operation,
            error=str(exc),
            error_class=exc.__class__.__name__,
            **log_fields,
        )
        raise StoreError(operation, str(exc)) from exc


def _new_word(payload: WordInput, now: datetime) -> Word:
    return Word(
        id=generate_word_id(),
        korean=payload.korean.strip(),
        translation=payload.translation.strip(),
        pronunciation=(payload.pronunciation or "").strip() or None,
        difficulty=payload.difficulty,
        category=payload.category,
        examples=list(payload.examples),
        progress=srs.initial_progress(now),
    )


def _merge_words(
    existing: list[Word], incoming: list[WordUpsert], now: datetime
) -> list[Word]:
    """Replace list contents while keeping progress of words that are kept.

    A payload word whose ``id`` matches a stored word keeps the stored
    progress. Unknown or missing ids are new words and start due immediately.
    """

    by_id = {word.id: word for word in existing}
    merged: list[Word] = []
    for item in incoming:
        stored = by_id.get(item.id) if item.id else None
        if stored is None:
            merged.append(_new_word(item, now))
            continue
        merged.append(
            stored.model_copy(
                update={
                    "korean": item.korean.strip(),
                    "translation": item.translation.strip(),
                    "pronunciation": (item.pronunciation or "").strip() or None,
                    "difficulty": item.difficulty,
                    "category": item.category,
                    "examples": list(item.examples),
                }
            )
        )
    return merged


def _words_payload(words: list[Word]) -> list[dict[str, Any]]:
    return [word.model_dump(mode="json") for word in words]


class FirestoreBaseStore:
    """Shared Firestore client holder."""

    def __init__(self, client: firestore.Client):
        self._client = client


class FirestoreUserStore(FirestoreBaseStore):
    """Accounts, credentials and learning profile counters."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._users = client.collection("users")

    @staticmethod
    def _to_user(doc_id: str, data: Mapping[str, Any]) -> User:
        return User(
            id=doc_id,
            username=str(data.get("username") or ""),
            email=str(data.get("email") or ""),
            profile=UserProfile.model_validate(data.get("profile") or {}),
            preferences=UserPreferences.model_validate(data.get("preferences") or {}),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def _find_one(self, field: str, value: str) -> firestore.DocumentSnapshot | None:
        query = self._users.where(field, "==", value).limit(1)
        for doc in query.stream():
            return doc
        return None

    def create_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        display_name: str | None = None,
    ) -> User:
        normalized_username = username.strip()
        normalized_email = email.strip().lower()
        with _translate_errors("create_user"):
            if self._find_one("username_lower", normalized_username.lower()) is not None:
                raise DuplicateUserError("username")
            if self._find_one("email", normalized_email) is not None:
                raise DuplicateUserError("email")
            user_id = generate_user_id()
            now = now_iso()
            profile = UserProfile(display_name=display_name or normalized_username)
            self._users.document(user_id).create(
                {
                    "username": normalized_username,
                    "username_lower": normalized_username.lower(),
                    "email": normalized_email,
                    "password_hash": password_hash,
                    "profile": profile.model_dump(mode="json"),
                    "preferences": UserPreferences().model_dump(mode="json"),
                    "created_at": now,
                    "updated_at": now,
                }
            )
            snapshot = self._users.document(user_id).get()
        if not snapshot.exists:  # pragma: no cover
            raise StoreError("create_user", "user document missing after create")
        return self._to_user(snapshot.id, snapshot.to_dict() or {})

    def get_user(self, user_id: str) -> User | None:
        with _translate_errors("get_user", user_id=user_id):
            snapshot = self._users.document(user_id).get()
        if not snapshot.exists:
            return None
        return self._to_user(snapshot.id, snapshot.to_dict() or {})

    def get_credentials(self, login: str) -> tuple[User, str] | None:
        """Look up a user by username or email and return it with its password hash."""

        target = login.strip().lower()
        if not target:
            return None
        field = "email" if "@" in target else "username_lower"
        with _translate_errors("get_credentials"):
            snapshot = self._find_one(field, target)
        if snapshot is None:
            return None
        data = snapshot.to_dict() or {}
        return self._to_user(snapshot.id, data), str(data.get("password_hash") or "")

    def update_profile(self, user_id: str, changes: ProfileUpdateRequest) -> User | None:
        with _translate_errors("update_profile", user_id=user_id):
            ref = self._users.document(user_id)
            snapshot = ref.get()
            if not snapshot.exists:
                return None
            data = snapshot.to_dict() or {}
            profile = UserProfile.model_validate(data.get("profile") or {})
            profile_updates = changes.model_dump(
                exclude_unset=True, exclude_none=True, exclude={"preferences"}
            )
            updates: dict[str, Any] = {
                "profile": profile.model_copy(update=profile_updates).model_dump(mode="json"),
                "updated_at": now_iso(),
            }
            if changes.preferences is not None:
                updates["preferences"] = changes.preferences.model_dump(mode="json")
            ref.update(updates)
            data.update(updates)
        return self._to_user(user_id, data)

    def record_session_result(self, user_id: str, mastered_increment: int) -> User | None:
        """Bump ``total_sessions`` and add newly mastered words to the profile."""

        with _translate_errors("record_session_result", user_id=user_id):
            ref = self._users.document(user_id)
            snapshot = ref.get()
            if not snapshot.exists:
                return None
            data = snapshot.to_dict() or {}
            profile = UserProfile.model_validate(data.get("profile") or {})
            profile.total_sessions = normalize_non_negative_int(profile.total_sessions) + 1
            profile.mastered_words = normalize_non_negative_int(
                profile.mastered_words + max(0, int(mastered_increment))
            )
            updates = {"profile": profile.model_dump(mode="json"), "updated_at": now_iso()}
            ref.update(updates)
            data.update(updates)
        return self._to_user(user_id, data)

    def get_usernames(self, user_ids: set[str]) -> dict[str, str]:
        names: dict[str, str] = {}
        with _translate_errors("get_usernames"):
            for user_id in sorted(user_ids):
                snapshot = self._users.document(user_id).get()
                if snapshot.exists:
                    names[user_id] = str((snapshot.to_dict() or {}).get("username") or "")
        return names


class FirestoreWordListStore(FirestoreBaseStore):
    """Word lists with their embedded words and per-word progress."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._word_lists = client.collection("word_lists")

    @staticmethod
    def _to_word_list(doc_id: str, data: Mapping[str, Any]) -> WordList:
        return WordList.model_validate({**data, "id": doc_id})

    def _get_owned_snapshot(
        self, owner_id: str, list_id: str
    ) -> firestore.DocumentSnapshot | None:
        """Fetch a list document only if it belongs to ``owner_id``."""

        snapshot = self._word_lists.document(list_id).get()
        if not snapshot.exists:
            return None
        if (snapshot.to_dict() or {}).get("author") != owner_id:
            return None
        return snapshot

    def list_word_lists(self, owner_id: str) -> list[WordList]:
        query = self._word_lists.where("author", "==", owner_id).order_by(
            "created_at", direction=firestore.Query.DESCENDING
        )
        with _translate_errors("list_word_lists", owner_id=owner_id):
            docs = list(query.stream())
        return [self._to_word_list(doc.id, doc.to_dict() or {}) for doc in docs]

    def list_public_word_lists(self, limit: int = PUBLIC_LIST_LIMIT) -> list[WordList]:
        query = (
            self._word_lists.where("is_public", "==", True)
            .order_by("stats.total_students", direction=firestore.Query.DESCENDING)
            .limit(max(1, int(limit)))
        )
        with _translate_errors("list_public_word_lists"):
            docs = list(query.stream())
        return [self._to_word_list(doc.id, doc.to_dict() or {}) for doc in docs]

    def create_word_list(
        self,
        owner_id: str,
        req: WordListCreateRequest,
        *,
        now: datetime | None = None,
    ) -> WordList:
        created = now or utcnow()
        timestamp = now_iso(created)
        words = [_new_word(item, created) for item in req.words]
        list_id = generate_word_list_id()
        payload = {
            "title": req.title.strip(),
            "description": req.description,
            "category": req.category or DEFAULT_LIST_CATEGORY,
            "words": _words_payload(words),
            "author": owner_id,
            "is_public": bool(req.is_public),
            "tags": list(req.tags),
            "difficulty": req.difficulty or DEFAULT_LIST_DIFFICULTY,
            "total_words": len(words),
            "stats": WordListStats().model_dump(mode="json"),
            "created_at": timestamp,
            "updated_at": timestamp,
        }
        with _translate_errors("create_word_list", owner_id=owner_id):
            self._word_lists.document(list_id).set(payload)
        return self._to_word_list(list_id, payload)

    def get_word_list(self, owner_id: str, list_id: str) -> WordList | None:
        with _translate_errors("get_word_list", list_id=list_id):
            snapshot = self._get_owned_snapshot(owner_id, list_id)
        if snapshot is None:
            return None
        return self._to_word_list(snapshot.id, snapshot.to_dict() or {})

    def update_word_list(
        self,
        owner_id: str,
        list_id: str,
        req: WordListUpdateRequest,
        *,
        now: datetime | None = None,
    ) -> WordList | None:
        changed_at = now or utcnow()
        with _translate_errors("update_word_list", list_id=list_id):
            snapshot = self._get_owned_snapshot(owner_id, list_id)
            if snapshot is None:
                return None
            data = snapshot.to_dict() or {}
            updates: dict[str, Any] = req.model_dump(
                exclude_unset=True, exclude={"words"}
            )
            if "title" in updates and updates["title"] is not None:
                updates["title"] = updates["title"].strip()
            # Null values for non-nullable fields mean "leave unchanged".
            for key in ("title", "category", "is_public", "tags", "difficulty"):
                if key in updates and updates[key] is None:
                    updates.pop(key)
            if req.words is not None:
                current = self._to_word_list(snapshot.id, data).words
                merged = _merge_words(current, req.words, changed_at)
                updates["words"] = _words_payload(merged)
                updates["total_words"] = len(merged)
            updates["updated_at"] = now_iso(changed_at)
            snapshot.reference.update(updates)
        data.update(updates)
        return self._to_word_list(list_id, data)

    def delete_word_list(self, owner_id: str, list_id: str) -> bool:
        with _translate_errors("delete_word_list", list_id=list_id):
            snapshot = self._get_owned_snapshot(owner_id, list_id)
            if snapshot is None:
                return False
            snapshot.reference.delete()
        return True

    def record_word_review(
        self,
        owner_id: str,
        list_id: str,
        word_id: str,
        is_correct: bool,
        *,
        now: datetime | None = None,
    ) -> Word | None:
        """Apply one review outcome to a word and persist the list once.

        Raises :class:`WordListNotFoundError` when the list is missing or
        belongs to someone else, and returns ``None`` when the list does not
        contain the word. Neither case writes. Concurrent reviews of the same
        list are last-write-wins.
        """

        reviewed_at = now or utcnow()
        with _translate_errors("record_word_review", list_id=list_id, word_id=word_id):
            snapshot = self._get_owned_snapshot(owner_id, list_id)
            if snapshot is None:
                raise WordListNotFoundError(list_id)
            word_list = self._to_word_list(snapshot.id, snapshot.to_dict() or {})
            position = next(
                (idx for idx, word in enumerate(word_list.words) if word.id == word_id),
                None,
            )
            if position is None:
                return None
            word = word_list.words[position]
            updated = word.model_copy(
                update={"progress": srs.apply_review(word.progress, is_correct, now=reviewed_at)}
            )
            word_list.words[position] = updated
            snapshot.reference.update(
                {
                    "words": _words_payload(word_list.words),
                    "updated_at": now_iso(reviewed_at),
                }
            )
        logger.info(
            "word_review_recorded",
            list_id=list_id,
            word_id=word_id,
            is_correct=is_correct,
            mastery_level=updated.progress.mastery_level,
            next_review=updated.progress.next_review.isoformat()
            if updated.progress.next_review
            else None,
        )
        return updated

    def list_due_words(self, owner_id: str, *, now: datetime | None = None) -> list[DueWord]:
        moment = now or utcnow()
        due: list[DueWord] = []
        for word_list in self.list_word_lists(owner_id):
            for word in word_list.words:
                if srs.is_due(word.progress, moment):
                    due.append(
                        DueWord(
                            **word.model_dump(),
                            list_id=word_list.id,
                            list_title=word_list.title,
                        )
                    )
        return due

    def count_word_lists(self) -> int:
        with _translate_errors("count_word_lists"):
            aggregation = self._word_lists.count().get()
        return extract_count_from_aggregation(aggregation)


class FirestoreGameSessionStore(FirestoreBaseStore):
    """Finished or abandoned game sessions and their results."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._sessions = client.collection("game_sessions")

    def _user_query(self, user_id: str) -> firestore.Query:
        return self._sessions.where("user", "==", user_id)

    def create_game_session(
        self, user_id: str, req: GameSessionCreateRequest, *, now: datetime | None = None
    ) -> GameSession:
        timestamp = now_iso(now)
        session_id = generate_game_session_id()
        payload = {
            "user": user_id,
            "word_list": req.word_list,
            "game_type": req.game_type.value,
            "results": req.results.model_dump(mode="json"),
            "completed": req.completed,
            "created_at": timestamp,
            "updated_at": timestamp,
        }
        with _translate_errors("create_game_session", user_id=user_id):
            self._sessions.document(session_id).set(payload)
        return GameSession.model_validate({**payload, "id": session_id})

    def count_game_sessions(self, user_id: str) -> int:
        with _translate_errors("count_game_sessions", user_id=user_id):
            aggregation = self._user_query(user_id).count().get()
        return extract_count_from_aggregation(aggregation)

    def list_recent_game_sessions(
        self, user_id: str, limit: int = RECENT_SESSION_LIMIT
    ) -> list[GameSession]:
        query = (
            self._user_query(user_id)
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(max(1, int(limit)))
        )
        with _translate_errors("list_recent_game_sessions", user_id=user_id):
            docs = list(query.stream())
        return [
            GameSession.model_validate({**(doc.to_dict() or {}), "id": doc.id})
            for doc in docs
        ]

    def average_accuracy(self, user_id: str) -> float:
        """Mean of ``results.accuracy`` over all of the user's sessions, 0 when none."""

        total = 0.0
        count = 0
        with _translate_errors("average_accuracy", user_id=user_id):
            for doc in self._user_query(user_id).stream():
                results = (doc.to_dict() or {}).get("results") or {}
                accuracy = results.get("accuracy")
                if isinstance(accuracy, (int, float)):
                    total += float(accuracy)
                    count += 1
        return total / count if count else 0.0


class FirestoreUserDataStore(FirestoreBaseStore):
    """Free-form per-user snapshots keyed by ``(user_id, type)``.

    Creation and update are separate calls: ``create_user_data`` never
    overwrites and ``update_user_data`` never creates.
    """

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._user_data = client.collection("user_data")

    def _ref(self, user_id: str, data_type: str) -> firestore.DocumentReference:
        return self._user_data.document(user_data_document_id(user_id, data_type))

    def get_user_data(self, user_id: str, data_type: str) -> dict[str, Any] | None:
        with _translate_errors("get_user_data", user_id=user_id, data_type=data_type):
            snapshot = self._ref(user_id, data_type).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def create_user_data(self, user_id: str, data_type: str, data: Any) -> dict[str, Any]:
        timestamp = now_iso()
        payload = {
            "type": data_type,
            "user_id": user_id,
            "data": data,
            "created_at": timestamp,
            "updated_at": timestamp,
        }
        with _translate_errors("create_user_data", user_id=user_id, data_type=data_type):
            try:
                self._ref(user_id, data_type).create(payload)
            except gexc.AlreadyExists as exc:
                raise DocumentExistsError("create_user_data", str(exc)) from exc
        return payload

    def update_user_data(self, user_id: str, data_type: str, data: Any) -> dict[str, Any] | None:
        updates = {"data": data, "updated_at": now_iso()}
        with _translate_errors("update_user_data", user_id=user_id, data_type=data_type):
            try:
                self._ref(user_id, data_type).update(updates)
            except gexc.NotFound:
                return None
        return updates

    def count_user_data(self) -> int:
        with _translate_errors("count_user_data"):
            aggregation = self._user_data.count().get()
        return extract_count_from_aggregation(aggregation)


class AppFirestoreStore:
    """Firestore-backed persistence for the whole application."""

    def __init__(self, *, client: firestore.Client) -> None:
        self._client = client
        self.users = FirestoreUserStore(client)
        self.word_lists = FirestoreWordListStore(client)
        self.game_sessions = FirestoreGameSessionStore(client)
        self.user_data = FirestoreUserDataStore(client)

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()

    # --- Users ---
    def create_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        display_name: str | None = None,
    ) -> User:
        return self.users.create_user(
            username=username,
            email=email,
            password_hash=password_hash,
            display_name=display_name,
        )

    def get_user(self, user_id: str) -> User | None:
        return self.users.get_user(user_id)

    def get_credentials(self, login: str) -> tuple[User, str] | None:
        return self.users.get_credentials(login)

    def update_profile(self, user_id: str, changes: ProfileUpdateRequest) -> User | None:
        return self.users.update_profile(user_id, changes)

    def record_session_result(self, user_id: str, mastered_increment: int) -> User | None:
        return self.users.record_session_result(user_id, mastered_increment)

    # --- Word lists ---
    def list_word_lists(self, owner_id: str) -> list[WordList]:
        return self.word_lists.list_word_lists(owner_id)

    def list_public_word_lists(self, limit: int = PUBLIC_LIST_LIMIT) -> list[WordList]:
        lists = self.word_lists.list_public_word_lists(limit)
        usernames = self.users.get_usernames({item.author for item in lists})
        return [
            item.model_copy(update={"author_username": usernames.get(item.author)})
            for item in lists
        ]

    def create_word_list(
        self, owner_id: str, req: WordListCreateRequest, *, now: datetime | None = None
    ) -> WordList:
        return self.word_lists.create_word_list(owner_id, req, now=now)

    def get_word_list(self, owner_id: str, list_id: str) -> WordList | None:
        return self.word_lists.get_word_list(owner_id, list_id)

    def update_word_list(
        self,
        owner_id: str,
        list_id: str,
        req: WordListUpdateRequest,
        *,
        now: datetime | None = None,
    ) -> WordList | None:
        return self.word_lists.update_word_list(owner_id, list_id, req, now=now)

    def delete_word_list(self, owner_id: str, list_id: str) -> bool:
        return self.word_lists.delete_word_list(owner_id, list_id)

    def record_word_review(
        self,
        owner_id: str,
        list_id: str,
        word_id: str,
        is_correct: bool,
        *,
        now: datetime | None = None,
    ) -> Word | None:
        return self.word_lists.record_word_review(
            owner_id, list_id, word_id, is_correct, now=now
        )

    def list_due_words(self, owner_id: str, *, now: datetime | None = None) -> list[DueWord]:
        return self.word_lists.list_due_words(owner_id, now=now)

    # --- Game sessions ---
    def create_game_session(
        self, user_id: str, req: GameSessionCreateRequest, *, now: datetime | None = None
    ) -> GameSession:
        return self.game_sessions.create_game_session(user_id, req, now=now)

    def count_game_sessions(self, user_id: str) -> int:
        return self.game_sessions.count_game_sessions(user_id)

    def list_recent_game_sessions(
        self, user_id: str, limit: int = RECENT_SESSION_LIMIT
    ) -> list[GameSession]:
        return self.game_sessions.list_recent_game_sessions(user_id, limit)

    def average_accuracy(self, user_id: str) -> float:
        return self.game_sessions.average_accuracy(user_id)

    # --- User data snapshots ---
    def get_user_data(self, user_id: str, data_type: str) -> dict[str, Any] | None:
        return self.user_data.get_user_data(user_id, data_type)

    def create_user_data(self, user_id: str, data_type: str, data: Any) -> dict[str, Any]:
        return self.user_data.create_user_data(user_id, data_type, data)

    def update_user_data(self, user_id: str, data_type: str, data: Any) -> dict[str, Any] | None:
        return self.user_data.update_user_data(user_id, data_type, data)

    # --- Diagnostics ---
    def ping(self) -> dict[str, int]:
        """Round-trip the store with two aggregation queries."""

        return {
            "word_lists": self.word_lists.count_word_lists(),
            "user_data": self.user_data.count_user_data(),
        }
