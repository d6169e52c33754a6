from __future__ import annotations

from typing import Optional

import requests

from ocean_tracking.api.carriers import CarrierProfile
from ocean_tracking.api.normalize import NormalizationError
from ocean_tracking.models import CategorizedError, ErrorKind


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; HTTP-date and garbage give None."""
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def classify_response(profile: CarrierProfile, resp: requests.Response) -> CategorizedError:
    """Map a non-2xx response onto the fixed error kinds."""
    code = resp.status_code
    name = profile.name
    if code in (401, 403):
        return CategorizedError(name, ErrorKind.AUTH_ERROR,
                                f"{profile.display_name} API authentication failed", status_code=code)
    if code == 404:
        return CategorizedError(name, ErrorKind.NOT_FOUND,
                                "Tracking number not found", status_code=code)
    if code == 429:
        hint = parse_retry_after(resp.headers.get("Retry-After"))
        return CategorizedError(
            name, ErrorKind.RATE_LIMIT, f"{profile.display_name} API rate limit exceeded",
            retry_after=hint if hint is not None else profile.default_retry_after,
            status_code=code,
        )
    if code in profile.quota_statuses:
        return CategorizedError(
            name, ErrorKind.RATE_LIMIT, f"{profile.display_name} API quota exceeded",
            retry_after=profile.quota_statuses[code], status_code=code,
        )
    return CategorizedError(name, ErrorKind.INVALID_RESPONSE,
                            f"{profile.display_name} API error: HTTP {code}", status_code=code)


def classify_exception(profile: CarrierProfile, exc: BaseException) -> CategorizedError:
    """
    Map anything raised while calling/decoding a provider onto an error kind.

    Order matters: requests' ConnectTimeout is both a Timeout and a
    ConnectionError and must count as a timeout.
    """
    name = profile.name
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return classify_response(profile, exc.response)
    if isinstance(exc, requests.Timeout):
        return CategorizedError(name, ErrorKind.TIMEOUT, f"{profile.display_name} API request timed out")
    if isinstance(exc, requests.ConnectionError):
        return CategorizedError(name, ErrorKind.NETWORK_ERROR,
                                f"Unable to connect to {profile.display_name} API")
    if isinstance(exc, (NormalizationError, ValueError)):
        # includes JSON decode errors raised by Response.json()
        return CategorizedError(name, ErrorKind.INVALID_RESPONSE,
                                f"{profile.display_name} API returned an unreadable response: {exc}")
    if isinstance(exc, requests.RequestException):
        return CategorizedError(name, ErrorKind.NETWORK_ERROR, f"{profile.display_name} API request failed: {exc}")
    return CategorizedError(name, ErrorKind.INVALID_RESPONSE, f"Unexpected error: {exc}")
