from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional, Sequence


class ErrorKind(str, Enum):
    RATE_LIMIT = "RATE_LIMIT"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    AUTH_ERROR = "AUTH_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


# Kinds an adapter gives up on immediately
PERMANENT_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.AUTH_ERROR, ErrorKind.NOT_FOUND, ErrorKind.RATE_LIMIT}
)

# Kinds that mean "try again later" to the caller
TRANSIENT_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.RATE_LIMIT, ErrorKind.NETWORK_ERROR}
)


@dataclass(frozen=True)
class CategorizedError:
    provider: str
    kind: ErrorKind
    message: str
    retry_after: Optional[float] = None
    status_code: Optional[int] = None

    @property
    def is_permanent(self) -> bool:
        return self.kind in PERMANENT_KINDS

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        return d


class TrackingError(RuntimeError):
    """Base class for caller-visible tracking failures."""

    code = "TRACKING_ERROR"
    http_status = 500
    retry_after: Optional[float] = None

    def __init__(self, message: str, errors: Sequence[CategorizedError] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.errors: tuple[CategorizedError, ...] = tuple(errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryAfter": self.retry_after,
        }


class TemporarilyUnavailableError(TrackingError):
    code = "SERVICE_TEMPORARILY_UNAVAILABLE"
    http_status = 503
    retry_after = 300.0


class TrackingNotFoundError(TrackingError):
    code = "TRACKING_NOT_FOUND"
    http_status = 404


class NoTrackingDataError(TrackingError):
    """Raised by the merge step when nothing usable was collected."""
    code = "NO_TRACKING_DATA"
    http_status = 404


class InvalidTrackingNumberError(TrackingError, ValueError):
    code = "INVALID_TRACKING_NUMBER"
    http_status = 400
