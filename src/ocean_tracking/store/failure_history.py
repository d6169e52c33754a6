from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Mapping, Optional

from ocean_tracking.models import ErrorKind


@dataclass(frozen=True)
class FailureStats:
    """What the router sees for one provider."""
    count: int
    last_failure_age: Optional[float]  # seconds, None when never failed


class FailureHistory:
    """Bounded, timestamped per-provider failure log.

    Failures older than `window_seconds` no longer count. A success forgets
    the oldest remembered failure, so a recovering provider climbs back
    gradually instead of being forgiven at once.
    """

    def __init__(
        self,
        *,
        max_entries: int = 20,
        window_seconds: float = 24 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_entries = max_entries
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._events: Dict[str, Deque[tuple[float, ErrorKind]]] = {}

    def _prune(self, q: Deque[tuple[float, ErrorKind]], now: float) -> None:
        while q and now - q[0][0] > self.window_seconds:
            q.popleft()

    def record_failure(self, provider: str, kind: ErrorKind) -> None:
        with self._lock:
            q = self._events.setdefault(provider, deque(maxlen=self.max_entries))
            q.append((self._clock(), kind))

    def record_success(self, provider: str) -> None:
        with self._lock:
            q = self._events.get(provider)
            if q:
                q.popleft()

    def count(self, provider: str) -> int:
        with self._lock:
            q = self._events.get(provider)
            if not q:
                return 0
            self._prune(q, self._clock())
            return len(q)

    def snapshot(self) -> Mapping[str, FailureStats]:
        """Immutable view for one routing decision."""
        with self._lock:
            now = self._clock()
            out: Dict[str, FailureStats] = {}
            for provider, q in self._events.items():
                self._prune(q, now)
                if q:
                    out[provider] = FailureStats(len(q), now - q[-1][0])
            return out

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
