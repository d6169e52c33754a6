import json

import pytest
import requests

from ocean_tracking.api.client import ReplayTransport


def _write(tmp_path, entries):
    f = tmp_path / "replay.json"
    f.write_text(json.dumps(entries), encoding="utf-8")
    return f


def test_replay_matches_provider_then_wildcard(tmp_path):
    f = _write(tmp_path, [
        {"provider": "maersk", "trackingNumber": "MAEU1234567", "body": {"who": "maersk"}},
        {"trackingNumber": "maeu1234567", "body": {"who": "any"}},
        {"provider": "msc", "trackingNumber": "MSCU7654321", "status": 429, "headers": {"Retry-After": "5"}},
    ])
    replay = ReplayTransport(f)
    assert replay.providers == ["maersk", "msc"]

    r = replay.bind("maersk").get("u", params={"trackingNumber": "maeu1234567"})
    assert r.status_code == 200 and r.json() == {"who": "maersk"}

    r = replay.bind("zim").get("u", params={"trackingNumber": "MAEU1234567"})
    assert r.json() == {"who": "any"}

    r = replay.bind("msc").get("u", params={"trackingNumber": "MSCU7654321"})
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "5"

    # bound views share the call log
    assert [c["provider"] for c in replay.calls] == ["maersk", "zim", "msc"]


def test_unknown_number_is_404(tmp_path):
    replay = ReplayTransport(_write(tmp_path, []))
    assert replay.get("u", params={"trackingNumber": "NOPE"}).status_code == 404


@pytest.mark.parametrize("error,exc", [("timeout", requests.Timeout), ("connection", requests.ConnectionError)])
def test_recorded_errors_raise(tmp_path, error, exc):
    replay = ReplayTransport(_write(tmp_path, {"trackingNumber": "X1", "error": error}))
    with pytest.raises(exc):
        replay.get("u", params={"trackingNumber": "X1"})


def test_missing_or_directory_replay_file_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        ReplayTransport(tmp_path / "missing.json")
    with pytest.raises(ValueError):
        ReplayTransport(tmp_path)
