from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from ocean_tracking.models import (
    ConsolidatedShipment,
    NoTrackingDataError,
    RawProviderResult,
    TimelineEvent,
    TrackingKind,
)


def deduplicate_timeline(events: Iterable[TimelineEvent]) -> List[TimelineEvent]:
    """Drop repeats of (timestamp, status, location); first occurrence wins, order kept."""
    seen: set = set()
    out: List[TimelineEvent] = []
    for ev in events:
        key = ev.dedup_key
        if key in seen:
            continue
        seen.add(key)
        out.append(ev)
    return out


def merge_timelines(results: Sequence[RawProviderResult]) -> tuple[TimelineEvent, ...]:
    flat = [ev for r in results if r.payload is not None for ev in r.payload.timeline]
    # sorted() is stable: ties keep provider priority order
    return tuple(sorted(deduplicate_timeline(flat), key=lambda ev: ev.timestamp))


def _first_with(results: Sequence[RawProviderResult], attr: str):
    for r in results:
        value = getattr(r.payload, attr, None) if r.payload is not None else None
        if value:
            return value
    return None


def prioritize(
    results: Sequence[RawProviderResult],
    *,
    now: Optional[Callable[[], datetime]] = None,
) -> ConsolidatedShipment:
    """
    Collapse provider results into one shipment.

    The most reliable accepted result is the primary and decides carrier,
    status and data source; every accepted result contributes timeline
    events; `last_updated` is the merge instant.
    """
    accepted = [r for r in results if r.accepted and r.payload is not None]
    if not accepted:
        raise NoTrackingDataError("No successful tracking data available")

    ranked = sorted(accepted, key=lambda r: r.reliability, reverse=True)
    primary = ranked[0]
    payload = primary.payload

    return ConsolidatedShipment(
        tracking_number=payload.tracking_number or primary.tracking_number,
        tracking_kind=primary.kind or TrackingKind.CONTAINER,
        carrier=payload.carrier,
        service=payload.service,
        status=payload.status,
        timeline=merge_timelines(ranked),
        data_source=primary.provider,
        reliability=primary.reliability,
        last_updated=(now or (lambda: datetime.now(timezone.utc)))(),
        containers=payload.containers or (_first_with(ranked, "containers") or ()),
        vessel=payload.vessel or _first_with(ranked, "vessel"),
        route=payload.route or _first_with(ranked, "route"),
        sources=tuple(r.provider for r in ranked),
    )
