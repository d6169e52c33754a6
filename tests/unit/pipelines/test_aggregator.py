import threading
from datetime import datetime, timezone

import pytest

from ocean_tracking.models import (
    EnvCfg,
    ErrorKind,
    TemporarilyUnavailableError,
    TrackingKind,
    TrackingNotFoundError,
)
from ocean_tracking.pipelines.aggregator import AggregationReport, TrackingAggregator, cache_key
from ocean_tracking.store.failure_history import FailureHistory

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
BOOKING = "123456789"


def _agg(adapters, clock, **kw):
    return TrackingAggregator(
        adapters,
        clock=clock,
        failure_history=FailureHistory(clock=clock),
        now=lambda: T0,
        **kw,
    )


def test_cache_key_normalizes():
    assert cache_key(" maeu1234567 ", None) == ("MAEU1234567", "auto")
    assert cache_key("x1", TrackingKind.BOL) == ("X1", "bol")


def test_early_exit_on_reliable_success(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95))
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([b, a], clock)
    report = AggregationReport()

    results = agg.fetch_from_multiple_sources(BOOKING, report=report)

    assert [r.provider for r in results] == ["a"]
    assert b.calls == []
    assert report.early_exit_by == "a"
    assert report.attempted == ["a"]


def test_threshold_is_strict(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.90))
    b = fake_adapter(make_config("b", reliability=0.80))
    report = AggregationReport()
    _agg([a, b], clock).fetch_from_multiple_sources(BOOKING, report=report)
    assert len(b.calls) == 1
    assert report.early_exit_by is None


def test_merges_sources_below_threshold(make_config, fake_adapter, make_event, clock):
    a = fake_adapter(make_config("a", reliability=0.85), events=[make_event(0)])
    b = fake_adapter(make_config("b", reliability=0.80),
                     events=[make_event(0), make_event(60, status="Vessel Departed")])
    agg = _agg([a, b], clock)

    shipment = agg.consolidate(BOOKING)

    assert shipment.data_source == "a"
    assert shipment.reliability == 0.85
    assert shipment.sources == ("a", "b")
    assert [e.status for e in shipment.timeline] == ["Loaded", "Vessel Departed"]
    assert shipment.last_updated == T0


def test_second_call_is_served_from_cache(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95))
    agg = _agg([a], clock)

    first = agg.consolidate(BOOKING)
    report = AggregationReport()
    second = agg.consolidate(BOOKING.lower(), report=report)

    assert len(a.calls) == 1
    assert report.from_cache
    assert first.data_source == second.data_source
    assert first.timeline == second.timeline

    agg.consolidate(BOOKING, use_cache=False)
    assert len(a.calls) == 2


def test_cache_expires(make_config, fake_adapter, clock):
    from ocean_tracking.store.cache import ResultCache

    a = fake_adapter(make_config("a", reliability=0.95))
    agg = _agg([a], clock, cache=ResultCache(60, clock=clock))
    agg.consolidate(BOOKING)
    clock.advance(61)
    agg.consolidate(BOOKING)
    assert len(a.calls) == 2


def test_cache_keeps_the_most_reliable_success(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.70))
    b = fake_adapter(make_config("b", reliability=0.85, cost_cents=0))
    agg = _agg([a, b], clock)
    agg.fetch_from_multiple_sources(BOOKING)
    assert agg.cache.get(cache_key(BOOKING, None)).provider == "b"


def test_all_not_found_reports_every_error(make_config, fake_adapter, clock):
    adapters = [fake_adapter(make_config(n), outcomes=[ErrorKind.NOT_FOUND]) for n in "abc"]
    report = AggregationReport()

    with pytest.raises(TrackingNotFoundError) as ei:
        _agg(adapters, clock).fetch_from_multiple_sources(BOOKING, report=report)

    assert len(ei.value.errors) == 3
    assert len(report.errors) == 3
    assert all(len(a.calls) == 1 for a in adapters)


def test_any_transient_error_means_temporarily_unavailable(make_config, fake_adapter, clock):
    adapters = [
        fake_adapter(make_config("a"), outcomes=[ErrorKind.NOT_FOUND]),
        fake_adapter(make_config("b"), outcomes=[ErrorKind.NETWORK_ERROR]),
    ]
    with pytest.raises(TemporarilyUnavailableError):
        _agg(adapters, clock).fetch_from_multiple_sources(BOOKING)


def test_timeouts_alone_are_not_found(make_config, fake_adapter, clock):
    adapters = [fake_adapter(make_config("a"), outcomes=[ErrorKind.TIMEOUT])]
    with pytest.raises(TrackingNotFoundError):
        _agg(adapters, clock).fetch_from_multiple_sources(BOOKING)


def test_local_rate_limit_skips_without_calling(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95, requests_per_minute=1))
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock)

    agg.fetch_from_multiple_sources(BOOKING)
    report = AggregationReport()
    results = agg.fetch_from_multiple_sources(BOOKING, use_cache=False, report=report)

    assert len(a.calls) == 1
    assert [r.provider for r in results] == ["b"]
    assert report.attempted == ["b"]
    [err] = report.errors
    assert (err.provider, err.kind, err.retry_after) == ("a", ErrorKind.RATE_LIMIT, 60.0)
    # a local skip says nothing about the provider's health
    assert agg.failure_history.count("a") == 0

    clock.advance(61)
    agg.fetch_from_multiple_sources(BOOKING, use_cache=False)
    assert len(a.calls) == 2


def test_only_rate_limited_providers_is_temporarily_unavailable(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95, requests_per_minute=1))
    agg = _agg([a], clock)
    agg.fetch_from_multiple_sources(BOOKING)
    with pytest.raises(TemporarilyUnavailableError):
        agg.fetch_from_multiple_sources(BOOKING, use_cache=False)


def test_partial_result_does_not_stop_the_search(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95), outcomes=["partial"])
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock)
    report = AggregationReport()

    results = agg.fetch_from_multiple_sources(BOOKING, report=report)

    assert [r.status.value for r in results] == ["partial", "success"]
    assert report.early_exit_by is None
    assert agg.cache.get(cache_key(BOOKING, None)).provider == "b"


def test_deadline_skips_remaining_providers(make_config, fake_adapter, clock):
    class SlowAdapter(fake_adapter):
        def track(self, tracking_number, kind=None):
            clock.advance(5)
            return super().track(tracking_number, kind)

    a = SlowAdapter(make_config("a", reliability=0.95), outcomes=[ErrorKind.TIMEOUT])
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock, deadline_seconds=3)
    report = AggregationReport()

    # b was never asked, so the number may well exist
    with pytest.raises(TemporarilyUnavailableError):
        agg.fetch_from_multiple_sources(BOOKING, report=report)

    assert b.calls == []
    assert report.skipped == ["b"]
    assert report.elapsed_seconds == 5


def test_failures_feed_back_into_routing(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95), outcomes=[ErrorKind.TIMEOUT])
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock)

    first, second = AggregationReport(), AggregationReport()
    agg.fetch_from_multiple_sources(BOOKING, report=first)
    assert first.decision.prioritized_providers == ("a", "b")
    assert agg.failure_history.count("a") == 1

    agg.fetch_from_multiple_sources(BOOKING, use_cache=False, report=second)
    decision = second.decision
    assert decision.prioritized_providers == ("b", "a")
    assert "Avoiding recently failed providers: a" in decision.reasoning


def test_success_clears_failure_memory(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95), outcomes=[ErrorKind.TIMEOUT, "success"])
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock)
    agg.fetch_from_multiple_sources(BOOKING)
    agg.fetch_from_multiple_sources(BOOKING, use_cache=False)
    assert agg.failure_history.count("a") == 0


def test_adapter_exception_is_contained(make_config, fake_adapter, clock):
    class Exploding(fake_adapter):
        def track(self, tracking_number, kind=None):
            raise RuntimeError("boom")

    a = Exploding(make_config("a", reliability=0.95))
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock)
    report = AggregationReport()

    results = agg.fetch_from_multiple_sources(BOOKING, report=report)

    assert [r.provider for r in results] == ["b"]
    assert report.errors[0].kind is ErrorKind.INVALID_RESPONSE
    # the call still counts against the limit
    assert agg.rate_limiter.remaining("a") == 59


def test_explicit_kind_filters_and_is_passed_through(make_config, fake_adapter, clock):
    container_only = fake_adapter(make_config("c", reliability=0.95, supported_kinds=(TrackingKind.CONTAINER,)))
    anything = fake_adapter(make_config("any", reliability=0.80))
    agg = _agg([container_only, anything], clock)

    agg.fetch_from_multiple_sources(BOOKING, "booking")

    assert container_only.calls == []
    assert anything.calls == [(BOOKING, TrackingKind.BOOKING)]


def test_inferred_kind_falls_back_when_nobody_supports_it(make_config, fake_adapter, clock):
    booking_only = fake_adapter(make_config("b", reliability=0.95, supported_kinds=(TrackingKind.BOOKING,)))
    agg = _agg([booking_only], clock)

    agg.fetch_from_multiple_sources("MAEU1234567")

    assert booking_only.calls == [("MAEU1234567", None)]


def test_inferred_kind_is_used_for_routing(make_config, fake_adapter, clock):
    container_only = fake_adapter(make_config("c", reliability=0.95, supported_kinds=(TrackingKind.CONTAINER,)))
    agg = _agg([container_only], clock)
    agg.fetch_from_multiple_sources("MAEU1234567")
    assert container_only.calls == [("MAEU1234567", TrackingKind.CONTAINER)]


def test_unavailable_adapters_are_not_routed(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", has_credential=False, api_key=""))
    agg = _agg([a], clock)
    with pytest.raises(TrackingNotFoundError) as ei:
        agg.fetch_from_multiple_sources(BOOKING)
    assert ei.value.errors == ()
    assert a.calls == []


def test_provider_stats_and_clear_cache(make_config, fake_adapter, clock):
    a = fake_adapter(make_config("a", reliability=0.95), outcomes=[ErrorKind.TIMEOUT])
    agg = _agg([a], clock)
    with pytest.raises(TrackingNotFoundError):
        agg.fetch_from_multiple_sources(BOOKING)

    stats = agg.provider_stats()["a"]
    assert stats == {
        "available": True,
        "reliability": 0.95,
        "rateLimitOk": True,
        "rateLimitRemaining": 59,
        "recentFailures": 1,
        "lastFailureAgeSeconds": 0.0,
    }
    agg.clear_cache()
    assert len(agg.cache) == 0


def test_from_env_builds_credentialed_adapters():
    env_cfg = EnvCfg(credentials={"maersk": "k1", "shipsgo": "k2"}, cache_ttl_seconds=30,
                     early_exit_reliability=0.8, deadline_seconds=10)
    agg = TrackingAggregator.from_env(env_cfg, transport=object())
    assert sorted(agg.adapters) == ["maersk", "shipsgo"]
    assert agg.cache.ttl_seconds == 30
    assert agg.early_exit_reliability == 0.8
    assert agg.deadline_seconds == 10


class GatedAdapter:
    """Wraps an adapter; the first call blocks inside `track` until released."""

    def __init__(self, inner):
        self.inner = inner
        self.entered = threading.Event()
        self.release = threading.Event()

    def is_available(self):
        return self.inner.is_available()

    def get_config(self):
        return self.inner.get_config()

    @property
    def calls(self):
        return self.inner.calls

    def track(self, tracking_number, kind=None):
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(5)
        return self.inner.track(tracking_number, kind)


def _in_thread(fn, *args, **kwargs):
    out = {}

    def run():
        try:
            out["value"] = fn(*args, **kwargs)
        except Exception as e:  # surfaced by the assertions below
            out["error"] = e

    t = threading.Thread(target=run)
    t.start()
    return t, out


def test_in_flight_call_holds_the_last_rate_limit_slot(make_config, fake_adapter, clock):
    a = GatedAdapter(fake_adapter(make_config("a", reliability=0.95, requests_per_minute=1)))
    b = fake_adapter(make_config("b", reliability=0.80))
    agg = _agg([a, b], clock)
    first = AggregationReport()

    t, out = _in_thread(agg.fetch_from_multiple_sources, BOOKING, report=first)
    assert a.entered.wait(5)

    second = AggregationReport()
    results = agg.fetch_from_multiple_sources(BOOKING, use_cache=False, report=second)
    a.release.set()
    t.join(5)

    assert "error" not in out
    assert len(a.calls) == 1
    assert [r.provider for r in results] == ["b"]
    assert second.attempted == ["b"]
    assert (second.errors[0].provider, second.errors[0].kind) == ("a", ErrorKind.RATE_LIMIT)
    assert first.attempted == ["a"] and first.early_exit_by == "a"


def test_concurrent_fetches_keep_their_own_reports(make_config, fake_adapter, clock):
    a = GatedAdapter(fake_adapter(make_config("a", reliability=0.95)))
    agg = _agg([a], clock)
    slow = AggregationReport()

    t, out = _in_thread(agg.consolidate, "MAEU1234567", report=slow)
    assert a.entered.wait(5)

    agg.consolidate(BOOKING)
    cached = AggregationReport()
    agg.consolidate(BOOKING, report=cached)
    a.release.set()
    t.join(5)

    assert out["value"].data_source == "a"
    assert cached.from_cache and cached.tracking_number == BOOKING
    assert not slow.from_cache
    assert slow.tracking_number == "MAEU1234567"
    assert slow.attempted == ["a"]
