from __future__ import annotations

from typing import Any

import pandas as pd

from ocean_tracking.pipelines.aggregator import TrackingAggregator

REPORT_COLUMNS = [
    "name",
    "status",
    "reliability",
    "cost_tier",
    "cost_cents",
    "is_aggregator",
    "supported_kinds",
    "coverage",
    "rate_limit_remaining",
    "recent_failures",
]


def _status(available: bool, rate_ok: bool, failures: int) -> str:
    if not available:
        return "inactive"
    if not rate_ok:
        return "rate_limited"
    if failures > 0:
        return "error"
    return "active"


def provider_status_frame(aggregator: TrackingAggregator) -> pd.DataFrame:
    """One row per configured provider, most reliable first."""
    stats = aggregator.provider_stats()
    rows = []
    for name, adapter in aggregator.adapters.items():
        cfg = adapter.get_config()
        s = stats[name]
        rows.append({
            "name": name,
            "status": _status(s["available"], s["rateLimitOk"], s["recentFailures"]),
            "reliability": cfg.reliability,
            "cost_tier": cfg.cost_tier.value,
            "cost_cents": cfg.cost_cents,
            "is_aggregator": cfg.is_aggregator,
            "supported_kinds": ", ".join(k.value for k in cfg.supported_kinds),
            "coverage": ", ".join(cfg.coverage),
            "rate_limit_remaining": s["rateLimitRemaining"],
            "recent_failures": s["recentFailures"],
        })
    df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    if df.empty:
        return df
    return df.sort_values(["reliability", "name"], ascending=[False, True]).reset_index(drop=True)


def dashboard_stats(frame: pd.DataFrame) -> dict[str, Any]:
    """Totals for a provider_status_frame()."""
    if frame.empty:
        return {"total": 0, "active": 0, "average_reliability": 0.0, "cost_breakdown": {}}
    active = frame[frame["status"] == "active"]
    return {
        "total": int(len(frame)),
        "active": int(len(active)),
        "average_reliability": round(float(frame["reliability"].mean()), 4),
        "cost_breakdown": {str(k): int(v) for k, v in frame["cost_tier"].value_counts().sort_index().items()},
    }
