"""Mastery update and review scheduling for a single word.

A word's mastery level is a continuous score in [0, 5]. A correct answer adds
0.2, a wrong one takes 0.1 away, and the next review is scheduled from the
floor of the new level using a fixed interval table. Level 5 reuses the
level-4 interval.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from .models.common import utcnow
from .models.word import WordProgress

REVIEW_INTERVALS_DAYS: tuple[int, ...] = (1, 3, 7, 14, 30)
MASTERY_MIN = 0.0
MASTERY_MAX = 5.0
CORRECT_STEP = 0.2
INCORRECT_STEP = 0.1


def schedule_interval(level: int) -> int:
    """Return the review interval in days for an integer mastery level."""

    index = min(max(int(level), 0), len(REVIEW_INTERVALS_DAYS) - 1)
    return REVIEW_INTERVALS_DAYS[index]


def next_mastery_level(current: float, is_correct: bool) -> float:
    if is_correct:
        return min(current + CORRECT_STEP, MASTERY_MAX)
    return max(current - INCORRECT_STEP, MASTERY_MIN)


def next_review_at(mastery_level: float, now: datetime) -> datetime:
    return now + timedelta(days=schedule_interval(math.floor(mastery_level)))


def initial_progress(now: datetime | None = None) -> WordProgress:
    """Progress for a word that was just added to a list: due immediately."""

    return WordProgress(next_review=now or utcnow())


def apply_review(
    progress: WordProgress, is_correct: bool, *, now: datetime | None = None
) -> WordProgress:
    """Return a new progress record with one review outcome applied.

    The input record is left untouched.
    """

    reviewed_at = now or utcnow()
    level = next_mastery_level(progress.mastery_level, is_correct)
    return progress.model_copy(
        update={
            "correct_count": progress.correct_count + (1 if is_correct else 0),
            "incorrect_count": progress.incorrect_count + (0 if is_correct else 1),
            "mastery_level": level,
            "last_reviewed": reviewed_at,
            "next_review": next_review_at(level, reviewed_at),
        }
    )


def is_due(progress: WordProgress, now: datetime | None = None) -> bool:
    """Words without a scheduled review are never reported as due."""

    if progress.next_review is None:
        return False
    return progress.next_review <= (now or utcnow())
