from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .errors import CategorizedError
from .provider import TrackingKind


class ResultStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class TimelineEvent:
    id: str
    timestamp: datetime
    status: str
    location: str
    description: str = ""
    is_completed: bool = False
    coordinates: Optional[Coordinates] = None

    @property
    def dedup_key(self) -> tuple[datetime, str, str]:
        """Two events are the same iff this tuple matches exactly."""
        return (self.timestamp, self.status, self.location)


@dataclass(frozen=True)
class Container:
    number: str
    size: str = "40ft"
    type: str = "GP"
    seal_number: Optional[str] = None
    weight: Optional[float] = None


@dataclass(frozen=True)
class VesselInfo:
    name: str
    imo: Optional[str] = None
    voyage: Optional[str] = None
    current_position: Optional[Coordinates] = None
    eta: Optional[datetime] = None
    ata: Optional[datetime] = None


@dataclass(frozen=True)
class Port:
    code: str
    name: str
    city: str = ""
    country: str = ""
    coordinates: Optional[Coordinates] = None


@dataclass(frozen=True)
class Route:
    origin: Port
    destination: Port
    intermediate_stops: tuple[Port, ...] = ()
    estimated_transit_days: Optional[int] = None


@dataclass(frozen=True)
class ShipmentPayload:
    """What one provider told us, in the shared vocabulary."""
    tracking_number: str
    carrier: str
    service: str
    status: str
    timeline: tuple[TimelineEvent, ...] = ()
    containers: tuple[Container, ...] = ()
    vessel: Optional[VesselInfo] = None
    route: Optional[Route] = None
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class RawProviderResult:
    provider: str
    tracking_number: str
    payload: Optional[ShipmentPayload]
    captured_at: datetime
    reliability: float
    status: ResultStatus
    error: Optional[CategorizedError] = None
    kind: Optional[TrackingKind] = None

    def __post_init__(self) -> None:
        if self.status is ResultStatus.SUCCESS and self.payload is None:
            raise ValueError("a successful provider result must carry a payload")

    @property
    def accepted(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.PARTIAL)


@dataclass(frozen=True)
class ConsolidatedShipment:
    tracking_number: str
    tracking_kind: TrackingKind
    carrier: str
    service: str
    status: str
    timeline: tuple[TimelineEvent, ...]
    data_source: str
    reliability: float
    last_updated: datetime
    containers: tuple[Container, ...] = ()
    vessel: Optional[VesselInfo] = None
    route: Optional[Route] = None
    sources: tuple[str, ...] = field(default=())

    @property
    def latest_event(self) -> Optional[TimelineEvent]:
        return self.timeline[-1] if self.timeline else None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly dict (datetimes as ISO strings, enums as values)."""
        return _jsonable(asdict(self))


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj
