from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any


def now_iso(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with fixed microsecond precision.

    Fixed width keeps lexicographic order equal to chronological order, which
    the ``order_by("created_at")`` queries rely on.
    """

    moment = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


def normalize_non_negative_int(value: Any) -> int:
    """Coerce a stored counter into a non-negative integer."""

    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return 0
    return ivalue if ivalue >= 0 else 0


def extract_count_from_aggregation(aggregation: Sequence[Any] | None) -> int:
    """Extract the numeric count from Firestore aggregation results."""

    if not aggregation:
        return 0
    result = aggregation[0]
    if isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
        # Client versions differ: some return [[AggregationResult]].
        if not result:
            return 0
        result = result[0]
    count_value: Any | None = getattr(result, "value", None)
    if count_value is None:
        aggregate_fields = getattr(result, "aggregate_fields", None)
        if isinstance(aggregate_fields, Mapping):
            count_value = aggregate_fields.get("count")
    return normalize_non_negative_int(count_value)
