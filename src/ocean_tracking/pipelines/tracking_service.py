from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from ocean_tracking.models import (
    ConsolidatedShipment,
    InvalidTrackingNumberError,
    Optimization,
    TrackingError,
    TrackingKind,
    UserTier,
)
from ocean_tracking.pipelines.aggregator import AggregationReport, TrackingAggregator, cache_key
from ocean_tracking.store.cache import ResultCache

MIN_LENGTH = 3
MAX_LENGTH = 50
STALE_WARNING_MINUTES = 60
STALE_RETENTION_SECONDS = 24 * 3600


@dataclass(frozen=True)
class TrackingOutcome:
    shipment: ConsolidatedShipment
    from_cache: bool = False
    is_stale: bool = False
    data_age_minutes: float = 0.0
    warning: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "shipment": self.shipment.to_dict(),
            "fromCache": self.from_cache,
            "isStale": self.is_stale,
            "dataAgeMinutes": round(self.data_age_minutes, 1),
            "warning": self.warning,
        }


def validate_tracking_number(value: Optional[str]) -> str:
    """Trimmed, upper-cased number or InvalidTrackingNumberError."""
    if value is None:
        raise InvalidTrackingNumberError("Tracking number is required")
    s = str(value).strip()
    if not s:
        raise InvalidTrackingNumberError("Tracking number cannot be empty")
    if len(s) < MIN_LENGTH:
        raise InvalidTrackingNumberError("Tracking number is too short")
    if len(s) > MAX_LENGTH:
        raise InvalidTrackingNumberError("Tracking number is too long")
    return s.upper()


class TrackingService:
    """Caller-facing facade: validation, refresh control, stale fallback."""

    def __init__(
        self,
        aggregator: TrackingAggregator,
        *,
        stale_retention_seconds: float = STALE_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.aggregator = aggregator
        self.logger = logger or logging.getLogger("ocean_tracking.service")
        self._clock = clock
        # last good shipment per key, kept well past the result cache TTL
        self._last_good: ResultCache[tuple[ConsolidatedShipment, float]] = ResultCache(
            stale_retention_seconds, clock=clock)

    def _age_minutes(self, fetched_at: float) -> float:
        return max(0.0, (self._clock() - fetched_at) / 60.0)

    def track(
        self,
        tracking_number: Optional[str],
        kind: TrackingKind | str | None = None,
        *,
        force_refresh: bool = False,
        user_tier: Optional[UserTier] = None,
        optimization: Optional[Optimization] = None,
        report: Optional[AggregationReport] = None,
    ) -> TrackingOutcome:
        number = validate_tracking_number(tracking_number)
        try:
            kind = TrackingKind.parse(kind)
        except ValueError as e:
            raise InvalidTrackingNumberError(f"Unsupported tracking type: {kind}") from e
        key = cache_key(number, kind)
        if report is None:
            report = AggregationReport()

        try:
            shipment = self.aggregator.consolidate(
                number, kind,
                user_tier=user_tier,
                optimization=optimization,
                use_cache=not force_refresh,
                report=report,
            )
        except TrackingError as e:
            remembered = self._last_good.get(key)
            if remembered is None:
                raise
            shipment, fetched_at = remembered
            age = self._age_minutes(fetched_at)
            self.logger.warning("Serving stale data for %s (%.0f min old): %s", number, age, e)
            return TrackingOutcome(
                shipment=shipment,
                from_cache=True,
                is_stale=True,
                data_age_minutes=age,
                warning=f"Live tracking failed ({e.message}); showing data from {age:.0f} minutes ago",
            )

        from_cache = report.from_cache
        remembered = self._last_good.get(key)
        if from_cache and remembered is not None:
            fetched_at = remembered[1]
        else:
            fetched_at = self._clock()
            self._last_good.set(key, (shipment, fetched_at))

        age = self._age_minutes(fetched_at)
        warning = None
        if age > STALE_WARNING_MINUTES:
            warning = "Tracking data may be outdated"
        return TrackingOutcome(shipment, from_cache=from_cache, data_age_minutes=age, warning=warning)

    def last_updated(self, tracking_number: str, kind: TrackingKind | str | None = None) -> Optional[datetime]:
        remembered = self._last_good.get(cache_key(tracking_number, TrackingKind.parse(kind)))
        return remembered[0].last_updated if remembered else None
