import logging
import os
from datetime import datetime, timedelta, timezone

import pytest

from ocean_tracking.models import (
    CategorizedError,
    CostTier,
    ErrorKind,
    ProviderConfig,
    RawProviderResult,
    ResultStatus,
    ShipmentPayload,
    TimelineEvent,
    TrackingKind,
)

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

ALL_KINDS = (TrackingKind.CONTAINER, TrackingKind.BOOKING, TrackingKind.BOL)


@pytest.fixture(autouse=True)
def isolated_environ(monkeypatch, request):
    """Each test gets a private copy of os.environ without provider keys."""
    if request.node.get_closest_marker("live"):
        return os.environ
    env = {k: v for k, v in os.environ.items()
           if not k.endswith("_API_KEY") and not k.startswith("TRACKING_") and k != "LOG_LEVEL"}
    monkeypatch.setattr(os, "environ", env)
    return env


def _make_config(name="a", reliability=0.9, **overrides) -> ProviderConfig:
    base = dict(
        name=name,
        base_url=f"https://api.{name}.test/tracking",
        has_credential=True,
        requests_per_minute=60,
        requests_per_hour=10_000,
        reliability=reliability,
        timeout_seconds=5.0,
        retry_attempts=1,
        supported_kinds=ALL_KINDS,
        coverage=("global",),
        cost_tier=CostTier.PAID,
        cost_cents=10,
        api_key="k-" + name,
    )
    base.update(overrides)
    return ProviderConfig(**base)


def _event(minutes=0, status="Loaded", location="Rotterdam, NL", eid=None) -> TimelineEvent:
    return TimelineEvent(
        id=eid or f"e{minutes}-{status}",
        timestamp=T0 + timedelta(minutes=minutes),
        status=status,
        location=location,
    )


def _result(provider, reliability, status="success", events=None, kind=TrackingKind.CONTAINER, number="MAEU1234567",
            error_kind=None, carrier=None) -> RawProviderResult:
    if status == "error":
        return RawProviderResult(
            provider=provider, tracking_number=number, payload=None, captured_at=T0,
            reliability=0.0, status=ResultStatus.ERROR,
            error=CategorizedError(provider, error_kind or ErrorKind.NOT_FOUND, "nope"), kind=kind)
    if events is None:
        events = [_event(0)] if status == "success" else []
    payload = ShipmentPayload(
        tracking_number=number,
        carrier=carrier or provider.upper(),
        service="FCL",
        status="In Transit",
        timeline=tuple(events),
    )
    return RawProviderResult(
        provider=provider, tracking_number=number, payload=payload, captured_at=T0,
        reliability=reliability, status=ResultStatus(status), kind=kind)


class FakeAdapter:
    """Adapter double: replays scripted outcomes and counts calls."""

    def __init__(self, config, outcomes=("success",), events=None):
        self.config = config
        self.outcomes = list(outcomes)
        self.events = events
        self.calls = []

    def is_available(self):
        return self.config.has_credential

    def get_config(self):
        return self.config

    def track(self, tracking_number, kind=None):
        self.calls.append((tracking_number, kind))
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, ErrorKind):
            return _result(self.config.name, 0.0, "error", error_kind=outcome, kind=kind,
                           number=tracking_number.strip().upper())
        return _result(self.config.name, self.config.reliability, outcome, events=self.events, kind=kind,
                       number=tracking_number.strip().upper())


class FakeClock:
    def __init__(self, start=1000.0):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


@pytest.fixture
def make_config():
    return _make_config


@pytest.fixture
def make_event():
    return _event


@pytest.fixture
def make_result():
    return _result


@pytest.fixture
def fake_adapter():
    return FakeAdapter


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _detach_package_handlers():
    """CLI runs attach handlers to the package logger; drop them after each test."""
    yield
    lg = logging.getLogger("ocean_tracking")
    for h in list(lg.handlers):
        lg.removeHandler(h)
        h.close()
