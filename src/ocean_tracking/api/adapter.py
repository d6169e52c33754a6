from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from tenacity import Retrying, retry_if_result, stop_after_attempt

from ocean_tracking.api.carriers import CarrierProfile, profile_for
from ocean_tracking.api.classify import classify_exception, classify_response
from ocean_tracking.api.normalize import normalize_payload
from ocean_tracking.api.transport import RequestsTransport, Transport
from ocean_tracking.models import (
    CategorizedError,
    ErrorKind,
    ProviderConfig,
    RawProviderResult,
    ResultStatus,
    TrackingKind,
)

USER_AGENT = "ShippingTracker/1.0"


def normalize_tracking_number(value: str) -> str:
    return str(value or "").strip().upper()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _should_retry(result: RawProviderResult) -> bool:
    return result.error is not None and not result.error.is_permanent


class ProviderAdapter:
    """One provider behind the shared `track(number, kind)` contract.

    Never raises out of `track`: every failure ends up as an error result
    carrying a CategorizedError.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: Optional[Transport] = None,
        profile: Optional[CarrierProfile] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.profile = profile or profile_for(config.name)
        self.transport = transport or RequestsTransport(timeout=config.timeout_seconds)
        self.logger = logger or logging.getLogger(f"ocean_tracking.api.{config.name}")
        self._sleep = sleep
        self._now = now

    @property
    def name(self) -> str:
        return self.config.name

    def is_available(self) -> bool:
        return bool(self.config.has_credential and self.config.api_key)

    def get_config(self) -> ProviderConfig:
        return self.config

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        headers.update(self.profile.extra_headers)
        return headers

    def _error(self, number: str, err: CategorizedError, kind: Optional[TrackingKind]) -> RawProviderResult:
        return RawProviderResult(
            provider=self.name,
            tracking_number=number,
            payload=None,
            captured_at=self._now(),
            reliability=0.0,
            status=ResultStatus.ERROR,
            error=err,
            kind=kind,
        )

    def _attempt(self, url: str, number: str, kind: Optional[TrackingKind]) -> RawProviderResult:
        params = {
            "trackingNumber": number,
            "includeEvents": "true",
            "includeContainers": "true",
            "includeVessel": "true",
            "includeRoute": "true",
        }
        resp = self.transport.get(
            url, headers=self._headers(), params=params, timeout=self.config.timeout_seconds)
        try:
            if not resp.ok:
                body_preview = (resp.text or "")[:300]
                self.logger.warning("%s HTTP %s for %s: %s", self.name, resp.status_code, number, body_preview)
                return self._error(number, classify_response(self.profile, resp), kind)
            payload = normalize_payload(self.profile, number, resp.json())
        finally:
            resp.close()

        # a body without events still tells us the shipment exists
        status = ResultStatus.SUCCESS if payload.timeline else ResultStatus.PARTIAL
        return RawProviderResult(
            provider=self.name,
            tracking_number=number,
            payload=payload,
            captured_at=self._now(),
            reliability=self.config.reliability,
            status=status,
            kind=kind,
        )

    def track(self, tracking_number: str, kind: Optional[TrackingKind] = None) -> RawProviderResult:
        number = normalize_tracking_number(tracking_number)
        kind = TrackingKind.parse(kind)

        if not self.is_available():
            return self._error(number, CategorizedError(
                self.name, ErrorKind.AUTH_ERROR, f"{self.profile.display_name} API key not configured"), kind)

        url = self.config.base_url.rstrip("/") + self.profile.endpoint_for(kind)
        retrying = Retrying(
            stop=stop_after_attempt(max(1, int(self.config.retry_attempts))),
            wait=self.profile.backoff(),
            retry=retry_if_result(_should_retry),
            sleep=self._sleep,
            # out of attempts: hand back the last error result instead of raising
            retry_error_callback=lambda state: state.outcome.result(),
        )
        return retrying(self._guarded_attempt, url, number, kind)

    def _guarded_attempt(self, url: str, number: str, kind: Optional[TrackingKind]) -> RawProviderResult:
        self.logger.debug("%s GET %s (%s)", self.name, url, number)
        try:
            return self._attempt(url, number, kind)
        except Exception as e:
            err = classify_exception(self.profile, e)
            self.logger.warning("%s attempt failed: %s (%s)", self.name, err.kind.value, err.message)
            return self._error(number, err, kind)


def build_adapters(
    configs,
    *,
    transport: Optional[Transport] = None,
    transport_for: Optional[Callable[[ProviderConfig], Transport]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[ProviderAdapter]:
    """
    One adapter per config. By default all adapters share one pooled
    RequestsTransport; `transport_for` picks a transport per provider
    (e.g. ReplayTransport.bind).
    """
    shared = None
    if transport_for is None:
        shared = transport or RequestsTransport()
    adapters = []
    for cfg in configs:
        t = transport_for(cfg) if transport_for is not None else shared
        adapters.append(ProviderAdapter(cfg, transport=t, sleep=sleep))
    return adapters
