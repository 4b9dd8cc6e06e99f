"""Router package exports."""

from . import auth, health, stats, user_data, vocabulary, word_lists

__all__ = [
    "auth",
    "health",
    "stats",
    "user_data",
    "vocabulary",
    "word_lists",
]
