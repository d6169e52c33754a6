from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from ocean_tracking.models import ProviderConfig

MINUTE = 60.0
HOUR = 3600.0


@dataclass
class RateLimitWindow:
    count: int
    started_at: float


class RateLimiter:
    """Per-provider fixed windows (per minute and per hour), process local.

    `try_acquire` checks and counts in one step, so concurrent callers
    cannot all slip through the same last slot. `check_rate_limit` and
    `record_request` stay available for read-only checks and bookkeeping.
    """

    def __init__(
        self,
        configs: Iterable[ProviderConfig] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._limits: Dict[str, tuple[int, int]] = {}
        self._minute: Dict[str, RateLimitWindow] = {}
        self._hour: Dict[str, RateLimitWindow] = {}
        for cfg in configs:
            self.configure(cfg)

    def configure(self, cfg: ProviderConfig) -> None:
        with self._lock:
            self._limits[cfg.name] = (cfg.requests_per_minute, cfg.requests_per_hour)

    def _window(self, table: Dict[str, RateLimitWindow], provider: str, span: float, now: float) -> RateLimitWindow:
        w = table.get(provider)
        if w is None or now - w.started_at > span:
            w = RateLimitWindow(0, now)
            table[provider] = w
        return w

    def check_rate_limit(self, provider: str) -> bool:
        """True when `provider` may be called now. Unconfigured providers are unlimited."""
        with self._lock:
            return self._allowed(provider, self._clock())

    def _allowed(self, provider: str, now: float) -> bool:
        limits = self._limits.get(provider)
        if limits is None:
            return True
        per_minute, per_hour = limits
        minute = self._window(self._minute, provider, MINUTE, now)
        hour = self._window(self._hour, provider, HOUR, now)
        return minute.count < per_minute and hour.count < per_hour

    def _count(self, provider: str, now: float) -> None:
        self._window(self._minute, provider, MINUTE, now).count += 1
        self._window(self._hour, provider, HOUR, now).count += 1

    def try_acquire(self, provider: str) -> bool:
        """Take one request slot for `provider`; False (nothing counted) when none is left."""
        with self._lock:
            now = self._clock()
            if not self._allowed(provider, now):
                return False
            self._count(provider, now)
            return True

    def record_request(self, provider: str) -> None:
        with self._lock:
            self._count(provider, self._clock())

    def remaining(self, provider: str) -> Optional[int]:
        """Calls left in the current minute window (None when unconfigured)."""
        with self._lock:
            limits = self._limits.get(provider)
            if limits is None:
                return None
            now = self._clock()
            used = self._window(self._minute, provider, MINUTE, now).count
            return max(0, limits[0] - used)

    def reset(self) -> None:
        with self._lock:
            self._minute.clear()
            self._hour.clear()
