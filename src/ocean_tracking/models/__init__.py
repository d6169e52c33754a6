from .env_cfg import EnvCfg
from .errors import (
    CategorizedError,
    ErrorKind,
    InvalidTrackingNumberError,
    NoTrackingDataError,
    TemporarilyUnavailableError,
    TrackingError,
    TrackingNotFoundError,
)
from .provider import CostTier, Optimization, ProviderConfig, TrackingKind, UserTier
from .shipment import (
    ConsolidatedShipment,
    Container,
    Coordinates,
    Port,
    RawProviderResult,
    ResultStatus,
    Route,
    ShipmentPayload,
    TimelineEvent,
    VesselInfo,
)

__all__ = [
    "EnvCfg",
    "CategorizedError",
    "ErrorKind",
    "InvalidTrackingNumberError",
    "NoTrackingDataError",
    "TemporarilyUnavailableError",
    "TrackingError",
    "TrackingNotFoundError",
    "CostTier",
    "Optimization",
    "ProviderConfig",
    "TrackingKind",
    "UserTier",
    "ConsolidatedShipment",
    "Container",
    "Coordinates",
    "Port",
    "RawProviderResult",
    "ResultStatus",
    "Route",
    "ShipmentPayload",
    "TimelineEvent",
    "VesselInfo",
]
