from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

import pandas as pd

from ocean_tracking.api.carriers import CarrierProfile
from ocean_tracking.models import (
    Container,
    Coordinates,
    Port,
    Route,
    ShipmentPayload,
    TimelineEvent,
    VesselInfo,
)


class NormalizationError(ValueError):
    """Body does not have the shape of a tracking response."""


def _first(d: dict[str, Any], keys: Iterable[str]) -> Any:
    for k in keys:
        v = d.get(k)
        if v not in (None, ""):
            return v
    return None


def _parse_dt(value: Any) -> Optional[datetime]:
    """Parse to an aware UTC datetime; None for missing or garbage."""
    if value in (None, "") or not isinstance(value, (str, int, float, datetime)):
        return None
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _coords(value: Any) -> Optional[Coordinates]:
    if not isinstance(value, dict):
        return None
    lat, lon = value.get("latitude"), value.get("longitude")
    try:
        return Coordinates(float(lat), float(lon))
    except (TypeError, ValueError):
        return None


def format_location(loc: Any) -> str:
    """'Terminal, City, Country' from a location object (or a plain string)."""
    if isinstance(loc, str):
        return loc.strip()
    if not isinstance(loc, dict):
        return ""
    parts = [loc.get("locationName"), loc.get("city"), loc.get("country")]
    return ", ".join(str(p).strip() for p in parts if p not in (None, ""))


def container_size(raw: Any) -> str:
    s = str(raw or "")
    if "20" in s:
        return "20ft"
    if "45" in s:
        return "45ft"
    return "40ft"


def container_type(raw: Any) -> str:
    s = str(raw or "").lower()
    if "high" in s or "hc" in s:
        return "HC"
    if "reefer" in s or "rf" in s:
        return "RF"
    if "open" in s or "ot" in s:
        return "OT"
    return "GP"


def service_type(*raw: Any) -> str:
    return "LCL" if any("lcl" in str(r or "").lower() for r in raw) else "FCL"


def _events(profile: CarrierProfile, number: str, items: Any) -> tuple[TimelineEvent, ...]:
    out: list[TimelineEvent] = []
    for i, ev in enumerate(items or []):
        if not isinstance(ev, dict):
            continue
        ts = _parse_dt(_first(ev, ("eventDateTime", "actualDateTime", "estimatedDateTime", "timestamp")))
        if ts is None:
            # an event we cannot place in time cannot be ordered or deduplicated
            continue
        loc = ev.get("location")
        out.append(TimelineEvent(
            id=str(ev.get("eventId") or f"{profile.name}-{number}-{i}"),
            timestamp=ts,
            status=profile.map_event(_first(ev, profile.event_code_fields)),
            location=format_location(loc),
            description=str(ev.get("eventDescription") or ev.get("description") or ""),
            is_completed=bool(ev.get("isCompleted", True)),
            coordinates=_coords(loc.get("coordinates")) if isinstance(loc, dict) else None,
        ))
    return tuple(out)


def _containers(items: Any) -> tuple[Container, ...]:
    out: list[Container] = []
    for c in items or []:
        if not isinstance(c, dict) or not c.get("containerNumber"):
            continue
        weight = c.get("weight")
        if isinstance(weight, dict):
            weight = weight.get("value")
        try:
            weight = float(weight) if weight is not None else None
        except (TypeError, ValueError):
            weight = None
        out.append(Container(
            number=str(c["containerNumber"]),
            size=container_size(c.get("containerSize")),
            type=container_type(c.get("containerType")),
            seal_number=c.get("sealNumber"),
            weight=weight,
        ))
    return tuple(out)


def _vessel(v: Any) -> Optional[VesselInfo]:
    if not isinstance(v, dict) or not v.get("vesselName"):
        return None
    return VesselInfo(
        name=str(v["vesselName"]),
        imo=v.get("vesselIMO"),
        voyage=v.get("voyageNumber"),
        current_position=_coords(v.get("currentPosition")),
        eta=_parse_dt(v.get("estimatedTimeOfArrival")),
        ata=_parse_dt(v.get("actualTimeOfArrival")),
    )


def _port(p: Any) -> Optional[Port]:
    if not isinstance(p, dict):
        return None
    code = p.get("portCode") or ""
    name = p.get("portName") or ""
    if not code and not name:
        return None
    return Port(
        code=str(code),
        name=str(name),
        city=str(p.get("city") or ""),
        country=str(p.get("country") or ""),
        coordinates=_coords(p.get("coordinates")),
    )


def _route(r: Any) -> Optional[Route]:
    if not isinstance(r, dict):
        return None
    origin, dest = _port(r.get("origin")), _port(r.get("destination"))
    if origin is None or dest is None:
        return None
    stops = tuple(p for p in (_port(s) for s in r.get("intermediateStops") or []) if p)
    transit = r.get("estimatedTransitDays")
    return Route(
        origin=origin,
        destination=dest,
        intermediate_stops=stops,
        estimated_transit_days=int(transit) if isinstance(transit, (int, float)) else None,
    )


def normalize_payload(profile: CarrierProfile, tracking_number: str, body: Any) -> ShipmentPayload:
    """
    Map one provider response body onto the shared shipment shape.

    Raises NormalizationError when the body is not a tracking object at all;
    anything else missing degrades to empty values.
    """
    if not isinstance(body, dict):
        raise NormalizationError(f"{profile.name}: expected a JSON object, got {type(body).__name__}")
    # some aggregators wrap the document in {"data": {...}}
    if "events" not in body and isinstance(body.get("data"), dict):
        body = body["data"]

    carrier = body.get("carrier")
    if isinstance(carrier, dict):
        carrier = carrier.get("name")
    shipment = body.get("shipment") if isinstance(body.get("shipment"), dict) else {}
    tracking = body.get("tracking") if isinstance(body.get("tracking"), dict) else {}

    return ShipmentPayload(
        tracking_number=tracking_number,
        carrier=str(carrier or profile.display_name),
        service=service_type(body.get("service"), shipment.get("type")),
        status=profile.map_status(body.get("status")),
        timeline=_events(profile, tracking_number, body.get("events")),
        containers=_containers(body.get("containers")),
        vessel=_vessel(body.get("vessel")),
        route=_route(body.get("route")),
        last_updated=_parse_dt(body.get("lastUpdated") or tracking.get("lastUpdated")),
    )
