"""Static provider table and the credential filter that turns it into live configs."""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional

from ocean_tracking.models import CostTier, EnvCfg, ProviderConfig, TrackingKind

C, B, L = TrackingKind.CONTAINER, TrackingKind.BOOKING, TrackingKind.BOL
GLOBAL = ("global",)
ASIA = ("asia-pacific", "global")


def _p(name, base_url, rpm, rph, reliability, timeout, retries, kinds, coverage, tier, cost, aggregator=False):
    return ProviderConfig(
        name=name,
        base_url=base_url,
        has_credential=False,
        requests_per_minute=rpm,
        requests_per_hour=rph,
        reliability=reliability,
        timeout_seconds=timeout,
        retry_attempts=retries,
        supported_kinds=kinds,
        coverage=coverage,
        cost_tier=tier,
        cost_cents=cost,
        is_aggregator=aggregator,
    )


PROVIDER_TABLE: tuple[ProviderConfig, ...] = (
    _p("maersk", "https://api.maersk.com/track", 60, 1000, 0.95, 10.0, 3, (B, C, L), GLOBAL, CostTier.PAID, 25),
    _p("msc", "https://api.msc.com/track", 40, 800, 0.88, 12.0, 3, (B, C, L), GLOBAL, CostTier.PAID, 20),
    _p("cma-cgm", "https://api.cma-cgm.com/tracking", 25, 400, 0.85, 9.0, 2, (B, C), GLOBAL, CostTier.PAID, 22),
    _p("cosco", "https://api.cosco-shipping.com/tracking", 35, 600, 0.87, 10.0, 3, (B, C, L), ASIA, CostTier.PAID, 18),
    _p("hapag-lloyd", "https://api.hapag-lloyd.com/tracking", 30, 500, 0.90, 8.0, 2, (B, C), GLOBAL, CostTier.PAID, 24),
    _p("evergreen", "https://api.evergreen-line.com/tracking", 30, 500, 0.84, 9.0, 2, (B, C), ASIA, CostTier.PAID, 20),
    _p("one-line", "https://api.one-line.com/tracking", 30, 500, 0.86, 9.0, 2, (B, C), ASIA, CostTier.PAID, 20),
    _p("yang-ming", "https://api.yangming.com/tracking", 25, 400, 0.82, 8.0, 2, (B, C), ("asia-pacific",), CostTier.PAID, 18),
    _p("zim", "https://api.zim.com/tracking", 20, 300, 0.80, 8.0, 2, (B, C), ("mediterranean", "global"), CostTier.PAID, 15),
    _p("shipsgo", "https://api.shipsgo.com/v2/tracking", 100, 2000, 0.88, 8.0, 2, (C, B), GLOBAL, CostTier.FREEMIUM, 5, True),
    _p("searates", "https://api.searates.com/tracking", 60, 1000, 0.85, 8.0, 2, (C, B), GLOBAL, CostTier.FREEMIUM, 8, True),
    _p("project44", "https://api.project44.com/v4/tracking", 200, 5000, 0.93, 10.0, 3, (B, C, L), GLOBAL, CostTier.PAID, 50, True),
    _p("marine-traffic", "https://api.marinetraffic.com/v1/tracking", 10, 100, 0.70, 10.0, 2, (C,), GLOBAL, CostTier.FREEMIUM, 30),
    _p("vessel-finder", "https://api.vesselfinder.com/tracking", 15, 200, 0.72, 8.0, 2, (C,), GLOBAL, CostTier.FREEMIUM, 25),
    _p("track-trace", "https://api.track-trace.com/v1/tracking", 50, 500, 0.68, 8.0, 2, (C,), GLOBAL, CostTier.FREE, 0, True),
)


def provider_names() -> List[str]:
    return [p.name for p in PROVIDER_TABLE]


def build_provider_configs(
    env_cfg: EnvCfg,
    *,
    table: Iterable[ProviderConfig] = PROVIDER_TABLE,
    only: Optional[Iterable[str]] = None,
) -> List[ProviderConfig]:
    """
    Attach credentials from `env_cfg` and drop every provider that has none.

    `only` optionally restricts the result to the named providers.
    """
    wanted = set(only) if only is not None else None
    out: List[ProviderConfig] = []
    for cfg in table:
        if wanted is not None and cfg.name not in wanted:
            continue
        key = env_cfg.credentials.get(cfg.name, "")
        if not key:
            continue
        out.append(replace(cfg, has_credential=True, api_key=key))
    return out


__all__ = ["PROVIDER_TABLE", "provider_names", "build_provider_configs"]
