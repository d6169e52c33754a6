from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from ocean_tracking.models import (
    CategorizedError,
    ConsolidatedShipment,
    EnvCfg,
    ErrorKind,
    Optimization,
    ProviderConfig,
    RawProviderResult,
    ResultStatus,
    TrackingKind,
    UserTier,
)
from ocean_tracking.rules.failures import raise_total_failure
from ocean_tracking.rules.format_router import (
    CarrierFormatRouter,
    RoutingDecision,
    TrackingRequestContext,
    infer_kind,
)
from ocean_tracking.rules.merge import prioritize
from ocean_tracking.store.cache import ResultCache
from ocean_tracking.store.failure_history import FailureHistory
from ocean_tracking.store.rate_limiter import RateLimiter

LOCAL_RATE_LIMIT_RETRY_AFTER = 60.0


class Adapter(Protocol):
    def track(self, tracking_number: str, kind: Optional[TrackingKind] = None) -> RawProviderResult: ...
    def is_available(self) -> bool: ...
    def get_config(self) -> ProviderConfig: ...


@dataclass
class AggregationReport:
    """What happened during one fetch. Owned by the caller that passed it in."""
    tracking_number: str = ""
    kind: Optional[TrackingKind] = None
    from_cache: bool = False
    decision: Optional[RoutingDecision] = None
    attempted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[CategorizedError] = field(default_factory=list)
    early_exit_by: Optional[str] = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "trackingNumber": self.tracking_number,
            "kind": self.kind.value if self.kind else None,
            "fromCache": self.from_cache,
            "order": list(self.decision.prioritized_providers) if self.decision else [],
            "strategy": self.decision.fallback_strategy.value if self.decision else None,
            "reasoning": self.decision.reasoning if self.decision else None,
            "attempted": list(self.attempted),
            "skipped": list(self.skipped),
            "errors": [e.to_dict() for e in self.errors],
            "earlyExitBy": self.early_exit_by,
            "elapsedSeconds": round(self.elapsed_seconds, 3),
        }


def cache_key(tracking_number: str, kind: Optional[TrackingKind]) -> tuple[str, str]:
    return (str(tracking_number or "").strip().upper(), kind.value if kind else "auto")


class TrackingAggregator:
    """Runs one tracking request across providers in routed order.

    Owns no globals: adapters, cache, rate limiter, router, failure history
    and clock are all handed in, so several aggregators can coexist.
    """

    def __init__(
        self,
        adapters: Iterable[Adapter],
        *,
        cache: Optional[ResultCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        router: Optional[CarrierFormatRouter] = None,
        failure_history: Optional[FailureHistory] = None,
        early_exit_reliability: float = 0.9,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.adapters: Dict[str, Adapter] = {a.get_config().name: a for a in adapters}
        self.cache = cache if cache is not None else ResultCache(clock=clock)
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter(clock=clock)
        for a in self.adapters.values():
            self.rate_limiter.configure(a.get_config())
        self.router = router or CarrierFormatRouter()
        self.failure_history = failure_history if failure_history is not None else FailureHistory()
        self.early_exit_reliability = early_exit_reliability
        self.deadline_seconds = deadline_seconds
        self._clock = clock
        self._now = now
        self.logger = logger or logging.getLogger("ocean_tracking.aggregator")
        # normalized number -> providers that errored on the last run for it
        self._recent_failures: ResultCache = ResultCache(self.cache.ttl_seconds, clock=clock)

    @classmethod
    def from_env(
        cls,
        env_cfg: EnvCfg,
        *,
        adapters: Optional[Sequence[Adapter]] = None,
        transport=None,
        transport_for=None,
        logger: Optional[logging.Logger] = None,
    ) -> "TrackingAggregator":
        """Wire the default stack from a resolved EnvCfg."""
        from ocean_tracking.api.adapter import build_adapters
        from ocean_tracking.config.providers import build_provider_configs

        if adapters is None:
            configs = build_provider_configs(env_cfg)
            adapters = build_adapters(configs, transport=transport, transport_for=transport_for)
        return cls(
            adapters,
            cache=ResultCache(env_cfg.cache_ttl_seconds),
            early_exit_reliability=env_cfg.early_exit_reliability,
            deadline_seconds=env_cfg.deadline_seconds,
            logger=logger,
        )

    # --- routing -------------------------------------------------------------

    def available_configs(self) -> List[ProviderConfig]:
        return [a.get_config() for a in self.adapters.values() if a.is_available()]

    def route(self, context: TrackingRequestContext) -> RoutingDecision:
        return self.router.order_providers(
            context, self.available_configs(), self.failure_history.snapshot())

    # --- main entry ----------------------------------------------------------

    def fetch_from_multiple_sources(
        self,
        tracking_number: str,
        kind: TrackingKind | str | None = None,
        *,
        user_tier: Optional[UserTier] = None,
        optimization: Optional[Optimization] = None,
        use_cache: bool = True,
        report: Optional[AggregationReport] = None,
    ) -> List[RawProviderResult]:
        """
        Query providers in routed order and return what they produced.

        Never raises for a single provider failing; raises
        TemporarilyUnavailableError or TrackingNotFoundError when nothing
        usable came back from any of them. Pass `report` to see what
        happened; it is filled in even when the call raises.
        """
        kind = TrackingKind.parse(kind)
        key = cache_key(tracking_number, kind)
        if report is None:
            report = AggregationReport()
        report.tracking_number, report.kind = key[0], kind
        started = self._clock()

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                self.logger.debug("Cache hit for %s (%s)", key[0], key[1])
                report.from_cache = True
                return [cached]

        context = TrackingRequestContext(
            tracking_number=tracking_number,
            kind=kind or infer_kind(tracking_number),
            user_tier=user_tier,
            previous_failures=tuple(self._recent_failures.get(key[0]) or ()),
            optimization=optimization,
        )
        decision = self.route(context)
        if not decision.prioritized_providers and kind is None and context.kind is not None:
            # the guessed kind ruled everyone out; the guess may be wrong
            context = replace(context, kind=None)
            decision = self.route(context)
        report.decision = decision
        self.logger.info("Routing %s: %s [%s]", key[0], ", ".join(decision.prioritized_providers) or "-",
                         decision.reasoning)

        results: List[RawProviderResult] = []
        errors = report.errors
        best_cached: Optional[RawProviderResult] = None
        order = list(decision.prioritized_providers)

        for i, name in enumerate(order):
            if self.deadline_seconds is not None and self._clock() - started >= self.deadline_seconds:
                report.skipped.extend(order[i:])
                self.logger.warning("Deadline of %.1fs reached; skipping %s", self.deadline_seconds,
                                    ", ".join(order[i:]))
                break

            adapter = self.adapters[name]
            # the slot is taken up front and counts whatever the call returns
            if not self.rate_limiter.try_acquire(name):
                errors.append(CategorizedError(
                    name, ErrorKind.RATE_LIMIT, f"Rate limit exceeded for {name}",
                    retry_after=LOCAL_RATE_LIMIT_RETRY_AFTER))
                self.logger.info("Skipping %s: local rate limit reached", name)
                continue

            report.attempted.append(name)
            try:
                result = adapter.track(tracking_number, context.kind)
            except Exception as e:  # adapters should not raise; keep going if one does
                self.logger.exception("Adapter %s raised: %s", name, e)
                result = RawProviderResult(
                    provider=name, tracking_number=key[0], payload=None, captured_at=self._now(),
                    reliability=0.0, status=ResultStatus.ERROR,
                    error=CategorizedError(name, ErrorKind.INVALID_RESPONSE, f"Unexpected error: {e}"),
                    kind=kind,
                )

            if result.status is ResultStatus.ERROR:
                err = result.error or CategorizedError(name, ErrorKind.INVALID_RESPONSE, "Unknown provider error")
                errors.append(err)
                self.failure_history.record_failure(name, err.kind)
                continue

            results.append(result)
            self.failure_history.record_success(name)

            if result.status is ResultStatus.SUCCESS:
                if best_cached is None or result.reliability > best_cached.reliability:
                    best_cached = result
                    self.cache.set(key, result)
                if result.reliability > self.early_exit_reliability:
                    report.early_exit_by = name
                    self.logger.info("Early exit after %s (reliability %.2f)", name, result.reliability)
                    break

        report.elapsed_seconds = self._clock() - started
        # local rate-limit skips carry no status code and say nothing about the provider
        failed = tuple(e.provider for e in errors if e.kind is not ErrorKind.RATE_LIMIT or e.status_code)
        if failed:
            self._recent_failures.set(key[0], failed)
        else:
            self._recent_failures.delete(key[0])

        if errors:
            self.logger.warning(
                "Provider errors for %s: %s", key[0],
                "; ".join(f"{e.provider}={e.kind.value}" for e in errors))

        if not results:
            raise_total_failure(errors, skipped=report.skipped)
        return results

    def consolidate(
        self,
        tracking_number: str,
        kind: TrackingKind | str | None = None,
        **kwargs: Any,
    ) -> ConsolidatedShipment:
        """fetch_from_multiple_sources + prioritize."""
        return prioritize(self.fetch_from_multiple_sources(tracking_number, kind, **kwargs), now=self._now)

    # --- housekeeping --------------------------------------------------------

    def provider_stats(self) -> Dict[str, Dict[str, Any]]:
        history = self.failure_history.snapshot()
        out: Dict[str, Dict[str, Any]] = {}
        for name, adapter in self.adapters.items():
            cfg = adapter.get_config()
            stats = history.get(name)
            out[name] = {
                "available": adapter.is_available(),
                "reliability": cfg.reliability,
                "rateLimitOk": self.rate_limiter.check_rate_limit(name),
                "rateLimitRemaining": self.rate_limiter.remaining(name),
                "recentFailures": stats.count if stats else 0,
                "lastFailureAgeSeconds": stats.last_failure_age if stats else None,
            }
        return out

    def clear_cache(self) -> None:
        self.cache.clear()
        self._recent_failures.clear()
