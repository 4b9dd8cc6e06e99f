from __future__ import annotations


class StoreError(RuntimeError):
    """The document store failed to read or write.

    ``operation`` names the store call that failed so handlers and logs can
    report it without parsing the message.
    """

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class DocumentExistsError(StoreError):
    """A create-only write hit an existing document."""


class DuplicateUserError(ValueError):
    """Username or email is already registered."""

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} is already registered")
        self.field = field


class WordListNotFoundError(LookupError):
    """The word list does not exist or belongs to another user."""

    def __init__(self, list_id: str) -> None:
        super().__init__(f"word list {list_id} not found")
        self.list_id = list_id
