from __future__ import annotations

import threading
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque


@dataclass
class RouteStats:
    latencies_ms: Deque[float]
    status_classes: Counter = field(default_factory=Counter)
    errors: int = 0
    timeouts: int = 0
    total: int = 0


class MetricsRegistry:
    """In-memory request metrics keyed by ``METHOD path``.

    Keeps a rolling latency window per route for p95, a counter per status
    class (``2xx``/``4xx``/``5xx``) and error/timeout totals.
    """

    def __init__(self, window_size: int = 200) -> None:
        self._window_size = window_size
        self._lock = threading.Lock()
        self._routes: dict[str, RouteStats] = defaultdict(
            lambda: RouteStats(latencies_ms=deque(maxlen=self._window_size))
        )

    def record(
        self,
        route: str,
        latency_ms: float,
        *,
        status_code: int | None = None,
        is_error: bool = False,
        is_timeout: bool = False,
    ) -> None:
        with self._lock:
            stats = self._routes[route]
            stats.latencies_ms.append(latency_ms)
            stats.total += 1
            if status_code is not None:
                stats.status_classes[f"{status_code // 100}xx"] += 1
            if is_error:
                stats.errors += 1
            if is_timeout:
                stats.timeouts += 1

    def snapshot(self) -> dict[str, dict[str, object]]:
        with self._lock:
            result: dict[str, dict[str, object]] = {}
            for route, stats in self._routes.items():
                latencies = list(stats.latencies_ms)
                result[route] = {
                    "p95_ms": round(percentile(latencies, 0.95), 2),
                    "count": stats.total,
                    "errors": stats.errors,
                    "timeouts": stats.timeouts,
                    "status": dict(stats.status_classes),
                }
            return result

    def reset(self) -> None:
        with self._lock:
            self._routes.clear()


def percentile(values: list[float], q: float) -> float:
    """Nearest-rank percentile on the lower side; 0.0 for an empty window."""

    if not values:
        return 0.0
    ordered = sorted(values)
    k = int(q * (len(ordered) - 1))
    return ordered[k]


registry = MetricsRegistry()
