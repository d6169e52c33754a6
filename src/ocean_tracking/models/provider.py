from __future__ import annotations

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Optional


class TrackingKind(str, Enum):
    CONTAINER = "container"
    BOOKING = "booking"
    BOL = "bol"

    @classmethod
    def parse(cls, value: "TrackingKind | str | None") -> Optional["TrackingKind"]:
        """Accept enum members, their values (any case), or None."""
        if value is None or isinstance(value, TrackingKind):
            return value
        s = str(value).strip().lower()
        if not s or s == "auto":
            return None
        return cls(s)


class CostTier(str, Enum):
    FREE = "free"
    FREEMIUM = "freemium"
    PAID = "paid"


class UserTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class Optimization(str, Enum):
    COST = "cost"
    RELIABILITY = "reliability"


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    base_url: str
    has_credential: bool
    requests_per_minute: int
    requests_per_hour: int
    reliability: float
    timeout_seconds: float
    retry_attempts: int
    supported_kinds: tuple[TrackingKind, ...]
    coverage: tuple[str, ...]
    cost_tier: CostTier
    cost_cents: int = 0
    is_aggregator: bool = False
    api_key: str = field(default="", repr=False)

    def supports(self, kind: Optional[TrackingKind]) -> bool:
        return kind is None or kind in self.supported_kinds

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        # never leak the key into logs/reports
        d.pop("api_key", None)
        d["supported_kinds"] = [k.value for k in self.supported_kinds]
        d["cost_tier"] = self.cost_tier.value
        return d
