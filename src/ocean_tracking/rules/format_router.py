# src/ocean_tracking/rules/format_router.py
"""
Carrier-format routing.

Guesses the carrier from the tracking number's shape and orders the
configured providers for one request. Everything here is pure: same
context, provider table and failure snapshot in, same decision out.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from ocean_tracking.models import CostTier, Optimization, ProviderConfig, TrackingKind, UserTier
from ocean_tracking.store.failure_history import FailureStats


class FallbackStrategy(str, Enum):
    FREE_FIRST = "free_first"
    PAID_FIRST = "paid_first"
    RELIABILITY_FIRST = "reliability_first"


@dataclass(frozen=True)
class CarrierPattern:
    carrier: Optional[str]
    pattern: re.Pattern
    confidence: float
    priority: int
    description: str = ""


def _pat(carrier, regex, confidence, priority, description=""):
    return CarrierPattern(carrier, re.compile(regex), confidence, priority, description)


# -------- Lexical patterns (owner prefix of the ISO 6346 container code) --------
CARRIER_PATTERNS: tuple[CarrierPattern, ...] = (
    _pat("maersk", r"^MAEU\d{7}$", 0.95, 1, "Maersk container"),
    _pat("maersk", r"^MSKU\d{7}$", 0.90, 2, "Maersk container (alt)"),
    _pat("msc", r"^MSCU\d{7}$", 0.95, 1, "MSC container"),
    _pat("msc", r"^MEDU\d{7}$", 0.85, 2, "MSC Mediterranean"),
    _pat("cma-cgm", r"^CMAU\d{7}$", 0.95, 1, "CMA CGM container"),
    _pat("cma-cgm", r"^CGMU\d{7}$", 0.90, 2, "CMA CGM container (alt)"),
    _pat("cosco", r"^COSU\d{7}$", 0.95, 1, "COSCO container"),
    _pat("cosco", r"^CXDU\d{7}$", 0.85, 2, "COSCO container (alt)"),
    _pat("hapag-lloyd", r"^HLXU\d{7}$", 0.95, 1, "Hapag-Lloyd container"),
    _pat("hapag-lloyd", r"^HPLU\d{7}$", 0.85, 2, "Hapag-Lloyd container (alt)"),
    _pat("evergreen", r"^EGLV\d{7,12}$", 0.95, 1, "Evergreen bill of lading"),
    _pat("evergreen", r"^EGHU\d{7}$", 0.85, 2, "Evergreen container"),
    _pat("one-line", r"^ONEU\d{7}$", 0.95, 1, "ONE container"),
    _pat("yang-ming", r"^YMLU\d{7}$", 0.95, 1, "Yang Ming container"),
    _pat("zim", r"^ZIMU\d{7}$", 0.95, 1, "ZIM container"),
    _pat(None, r"^[A-Z]{4}\d{7}$", 0.30, 10, "Generic ISO 6346 container"),
)

# three-letter prefixes used when no pattern is convincing
PREFIX_HEURISTICS: Mapping[str, tuple[str, float]] = {
    "MAE": ("maersk", 0.60),
    "MSK": ("maersk", 0.55),
    "MSC": ("msc", 0.60),
    "CMA": ("cma-cgm", 0.60),
    "CGM": ("cma-cgm", 0.55),
    "COS": ("cosco", 0.60),
    "HAP": ("hapag-lloyd", 0.55),
    "HLL": ("hapag-lloyd", 0.55),
    "EVG": ("evergreen", 0.55),
    "EGL": ("evergreen", 0.60),
    "ONE": ("one-line", 0.60),
    "YML": ("yang-ming", 0.60),
    "ZIM": ("zim", 0.60),
}

HEURISTIC_THRESHOLD = 0.5

_CONTAINER_RE = re.compile(r"^[A-Z]{3}[UJZ]\d{7}$")
_BOL_RE = re.compile(r"^[A-Z]{4}\d{8,12}$")
_BOOKING_RE = re.compile(r"^\d{8,12}$|^[A-Z]{3}\d{6,10}$")


@dataclass(frozen=True)
class CarrierMatch:
    carrier: Optional[str]
    confidence: float
    source: str  # "pattern" | "heuristic" | "none"


def _clean(number: str) -> str:
    return re.sub(r"\s+", "", str(number or "")).upper()


def detect_carrier(tracking_number: str) -> CarrierMatch:
    """Highest-confidence pattern wins; lower priority number breaks ties."""
    tn = _clean(tracking_number)
    best: Optional[CarrierPattern] = None
    for p in CARRIER_PATTERNS:
        if not p.pattern.match(tn):
            continue
        if best is None or (p.confidence, -p.priority) > (best.confidence, -best.priority):
            best = p

    match = CarrierMatch(best.carrier, best.confidence, "pattern") if best else CarrierMatch(None, 0.0, "none")
    if match.confidence < HEURISTIC_THRESHOLD:
        hint = PREFIX_HEURISTICS.get(tn[:3])
        if hint is not None and hint[1] > match.confidence:
            match = CarrierMatch(hint[0], hint[1], "heuristic")
    return match


def infer_kind(tracking_number: str) -> Optional[TrackingKind]:
    """Best lexical guess at the number's kind; None when it could be anything."""
    tn = _clean(tracking_number)
    if _CONTAINER_RE.match(tn):
        return TrackingKind.CONTAINER
    if _BOL_RE.match(tn):
        return TrackingKind.BOL
    if _BOOKING_RE.match(tn):
        return TrackingKind.BOOKING
    return None


@dataclass(frozen=True)
class TrackingRequestContext:
    tracking_number: str
    kind: Optional[TrackingKind] = None
    user_tier: Optional[UserTier] = None
    previous_failures: tuple[str, ...] = ()
    optimization: Optional[Optimization] = None

    @property
    def normalized_number(self) -> str:
        return _clean(self.tracking_number)


@dataclass(frozen=True)
class ScoreWeights:
    reliability: float
    cost: float
    carrier_match: float
    failure: float


STRATEGY_WEIGHTS: Mapping[FallbackStrategy, ScoreWeights] = {
    FallbackStrategy.PAID_FIRST: ScoreWeights(reliability=100.0, cost=0.5, carrier_match=50.0, failure=30.0),
    FallbackStrategy.FREE_FIRST: ScoreWeights(reliability=100.0, cost=5.0, carrier_match=50.0, failure=30.0),
    FallbackStrategy.RELIABILITY_FIRST: ScoreWeights(reliability=150.0, cost=0.0, carrier_match=50.0, failure=30.0),
}


@dataclass(frozen=True)
class RoutingDecision:
    prioritized_providers: tuple[str, ...]
    suggested_carrier: Optional[str]
    confidence: float
    fallback_strategy: FallbackStrategy
    reasoning: str
    scores: Mapping[str, float] = field(default_factory=dict)


def choose_strategy(context: TrackingRequestContext) -> FallbackStrategy:
    if context.user_tier is UserTier.FREE or context.optimization is Optimization.COST:
        return FallbackStrategy.FREE_FIRST
    if context.optimization is Optimization.RELIABILITY or context.user_tier is UserTier.ENTERPRISE:
        return FallbackStrategy.RELIABILITY_FIRST
    return FallbackStrategy.PAID_FIRST


class CarrierFormatRouter:
    def __init__(
        self,
        *,
        weights: Mapping[FallbackStrategy, ScoreWeights] = STRATEGY_WEIGHTS,
        failure_decay_seconds: float = 24 * 3600,
    ) -> None:
        self.weights = weights
        self.failure_decay_seconds = failure_decay_seconds

    def failure_penalty(self, stats: Optional[FailureStats]) -> float:
        """count scaled by how fresh the last failure is (1 now, 0 after the decay window)."""
        if stats is None or stats.count <= 0:
            return 0.0
        age = stats.last_failure_age or 0.0
        freshness = max(0.0, 1.0 - age / self.failure_decay_seconds)
        return stats.count * freshness

    def score(
        self,
        cfg: ProviderConfig,
        weights: ScoreWeights,
        match: CarrierMatch,
        stats: Optional[FailureStats] = None,
    ) -> float:
        carrier_bonus = match.confidence if match.carrier and match.carrier == cfg.name else 0.0
        return (
            weights.reliability * cfg.reliability
            - weights.cost * cfg.cost_cents
            + weights.carrier_match * carrier_bonus
            - weights.failure * self.failure_penalty(stats)
        )

    def order_providers(
        self,
        context: TrackingRequestContext,
        providers: Sequence[ProviderConfig],
        failures: Optional[Mapping[str, FailureStats]] = None,
    ) -> RoutingDecision:
        failures = failures or {}
        match = detect_carrier(context.tracking_number)
        strategy = choose_strategy(context)
        weights = self.weights[strategy]

        eligible = [p for p in providers if p.has_credential and p.supports(context.kind)]
        scores = {p.name: round(self.score(p, weights, match, failures.get(p.name)), 6) for p in eligible}
        recent = set(context.previous_failures)
        ordered = sorted(eligible, key=lambda p: (p.name in recent, -scores[p.name], p.name))

        return RoutingDecision(
            prioritized_providers=tuple(p.name for p in ordered),
            suggested_carrier=match.carrier,
            confidence=match.confidence,
            fallback_strategy=strategy,
            reasoning=self._reasoning(context, match, strategy, ordered),
            scores=scores,
        )

    def _reasoning(
        self,
        context: TrackingRequestContext,
        match: CarrierMatch,
        strategy: FallbackStrategy,
        ordered: Sequence[ProviderConfig],
    ) -> str:
        parts = []
        if match.carrier and match.confidence > 0.7:
            parts.append(f"Detected {match.carrier} container format ({round(match.confidence * 100)}% confidence)")
        if strategy is FallbackStrategy.FREE_FIRST:
            parts.append("Prioritizing cost-effective APIs")
        elif strategy is FallbackStrategy.RELIABILITY_FIRST:
            parts.append("Prioritizing high-reliability providers")
        if context.previous_failures:
            parts.append("Avoiding recently failed providers: " + ", ".join(context.previous_failures))
        if ordered:
            top = ordered[0]
            price = "free" if top.cost_tier is CostTier.FREE or top.cost_cents == 0 else f"{top.cost_cents}¢"
            parts.append(f"Top choice: {top.name} ({price}, {round(top.reliability * 100)}% reliable)")
        else:
            parts.append("No eligible providers configured")
        return "; ".join(parts)
