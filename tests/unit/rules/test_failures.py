import pytest

from ocean_tracking.models import (
    CategorizedError,
    ErrorKind,
    TemporarilyUnavailableError,
    TrackingNotFoundError,
)
from ocean_tracking.rules.failures import (
    NOT_FOUND_MESSAGE,
    TEMPORARILY_UNAVAILABLE_MESSAGE,
    is_transient,
    raise_total_failure,
)


def _err(kind, provider="maersk"):
    return CategorizedError(provider, kind, "x")


@pytest.mark.parametrize("kinds,transient", [
    ([ErrorKind.NOT_FOUND, ErrorKind.NOT_FOUND], False),
    ([ErrorKind.TIMEOUT, ErrorKind.INVALID_RESPONSE, ErrorKind.AUTH_ERROR], False),
    ([ErrorKind.NOT_FOUND, ErrorKind.RATE_LIMIT], True),
    ([ErrorKind.NETWORK_ERROR], True),
    ([], False),
])
def test_is_transient(kinds, transient):
    assert is_transient([_err(k) for k in kinds]) is transient


def test_all_not_found_is_not_found():
    errors = [_err(ErrorKind.NOT_FOUND, p) for p in ("a", "b", "c")]
    with pytest.raises(TrackingNotFoundError) as ei:
        raise_total_failure(errors)
    assert ei.value.message == NOT_FOUND_MESSAGE
    assert len(ei.value.errors) == 3
    assert ei.value.to_dict()["code"] == "TRACKING_NOT_FOUND"


def test_any_rate_limit_is_temporarily_unavailable():
    with pytest.raises(TemporarilyUnavailableError) as ei:
        raise_total_failure([_err(ErrorKind.NOT_FOUND), _err(ErrorKind.RATE_LIMIT, "msc")])
    e = ei.value
    assert e.message == TEMPORARILY_UNAVAILABLE_MESSAGE
    assert e.http_status == 503
    assert e.to_dict() == {"code": "SERVICE_TEMPORARILY_UNAVAILABLE",
                           "message": TEMPORARILY_UNAVAILABLE_MESSAGE, "retryAfter": 300.0}


def test_skipped_providers_are_temporarily_unavailable():
    with pytest.raises(TemporarilyUnavailableError):
        raise_total_failure([], skipped=["msc"])
    with pytest.raises(TemporarilyUnavailableError):
        raise_total_failure([_err(ErrorKind.TIMEOUT)], skipped=["msc", "zim"])


def test_nothing_routed_is_not_found():
    with pytest.raises(TrackingNotFoundError) as ei:
        raise_total_failure([])
    assert ei.value.errors == ()
