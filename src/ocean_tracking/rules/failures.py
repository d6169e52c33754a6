from __future__ import annotations

from typing import NoReturn, Sequence

from ocean_tracking.models import (
    CategorizedError,
    TemporarilyUnavailableError,
    TrackingNotFoundError,
)
from ocean_tracking.models.errors import TRANSIENT_KINDS

TEMPORARILY_UNAVAILABLE_MESSAGE = (
    "Tracking services are temporarily unavailable. Please try again in a few minutes."
)
NOT_FOUND_MESSAGE = (
    "Unable to find tracking information. Please verify the tracking number and try again."
)


def is_transient(errors: Sequence[CategorizedError]) -> bool:
    return any(e.kind in TRANSIENT_KINDS for e in errors)


def raise_total_failure(errors: Sequence[CategorizedError], skipped: Sequence[str] = ()) -> NoReturn:
    """Every provider came back empty: pick one of the two caller-facing failures.

    Providers skipped before they were asked (deadline) make it temporarily
    unavailable. With no providers routed at all the answer is "not found".
    """
    if skipped or is_transient(errors):
        raise TemporarilyUnavailableError(TEMPORARILY_UNAVAILABLE_MESSAGE, errors)
    raise TrackingNotFoundError(NOT_FOUND_MESSAGE, errors)
