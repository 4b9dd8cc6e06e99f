"""Document id helpers.

Firestore document ids must not contain ``/``; plain UUID hex strings with a
short type prefix keep ids readable in the console and safe as path segments.
"""

from __future__ import annotations

import uuid


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def generate_user_id() -> str:
    return generate_id("usr")


def generate_word_list_id() -> str:
    return generate_id("wl")


def generate_word_id() -> str:
    return generate_id("w")


def generate_game_session_id() -> str:
    return generate_id("gs")


def user_data_document_id(user_id: str, data_type: str) -> str:
    """Deterministic id for a user's data snapshot of a given type."""

    safe_type = data_type.strip().replace("/", "_")
    return f"{user_id}:{safe_type}"
