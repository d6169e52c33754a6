import json
from pathlib import Path

import pytest

from ocean_tracking import cli

GOOD_BODY = {
    "carrier": "Maersk",
    "status": "IN_TRANSIT",
    "events": [
        {"eventType": "GATE_OUT", "eventDateTime": "2024-02-28T10:00:00Z", "location": "Rotterdam, NL"},
        {"eventType": "LOADED", "eventDateTime": "2024-03-01T08:00:00Z", "location": "Rotterdam, NL"},
    ],
}


def _replay(tmp_path: Path, entries=None) -> Path:
    f = tmp_path / "replay.json"
    if entries is None:
        entries = [{"provider": "maersk", "trackingNumber": "MAEU1234567", "body": GOOD_BODY}]
    f.write_text(json.dumps(entries), encoding="utf-8")
    return f


def run_cli(tmp_path, *args):
    return cli.main([*args, "--no-console", "--env-file", str(tmp_path / "missing.env")])


def test_track_from_replay_prints_shipment(tmp_path, capsys):
    rc = run_cli(tmp_path, "track", "maeu1234567", "--replay-file", str(_replay(tmp_path)), "--report")

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    shipment = out["shipment"]
    assert shipment["tracking_number"] == "MAEU1234567"
    assert shipment["data_source"] == "maersk"
    assert shipment["status"] == "In Transit"
    assert [e["status"] for e in shipment["timeline"]] == ["Departed", "Loaded"]
    assert out["report"]["attempted"] == ["maersk"]
    assert out["report"]["earlyExitBy"] == "maersk"


def test_track_not_found_exits_1(tmp_path, capsys):
    rc = run_cli(tmp_path, "track", "MSCU7654321", "--replay-file", str(_replay(tmp_path)))
    assert rc == 1
    out = json.loads(capsys.readouterr().out)
    assert out["error"]["code"] == "TRACKING_NOT_FOUND"


def test_track_rate_limited_exits_1_with_retry_after(tmp_path, capsys):
    replay = _replay(tmp_path, [{"provider": "shipsgo", "trackingNumber": "MAEU1234567", "status": 429}])
    rc = run_cli(tmp_path, "track", "MAEU1234567", "--replay-file", str(replay))
    assert rc == 1
    out = json.loads(capsys.readouterr().out)
    assert out["error"]["code"] == "SERVICE_TEMPORARILY_UNAVAILABLE"
    assert out["error"]["retryAfter"] == 300.0


def test_invalid_tracking_number_exits_2(tmp_path):
    assert run_cli(tmp_path, "track", "AB", "--replay-file", str(_replay(tmp_path))) == 2


def test_missing_replay_file_exits_2(tmp_path):
    assert run_cli(tmp_path, "track", "MAEU1234567", "--replay-file", str(tmp_path / "nope.json")) == 2


def test_no_credentials_exits_2(tmp_path):
    assert run_cli(tmp_path, "track", "MAEU1234567") == 2


def test_strict_env_without_keys_exits_2(tmp_path):
    assert run_cli(tmp_path, "providers", "--strict-env") == 2


def test_env_file_keys_are_used(tmp_path, capsys):
    env_file = tmp_path / "keys.env"
    env_file.write_text("ZIM_API_KEY=zim-key\n", encoding="utf-8")
    rc = cli.main(["providers", "--no-console", "--env-file", str(env_file)])
    assert rc == 0
    out = capsys.readouterr().out
    assert "zim" in out
    assert "zim-key" not in out


def test_providers_lists_replay_providers(tmp_path, capsys):
    rc = run_cli(tmp_path, "providers", "--replay-file", str(_replay(tmp_path)))
    assert rc == 0
    out = capsys.readouterr().out
    assert "maersk" in out
    assert '"total": 1' in out


def test_batch_missing_input_exits_2(tmp_path):
    assert run_cli(tmp_path, "batch", str(tmp_path / "missing.xlsx")) == 2


def test_batch_rejects_non_xlsx(tmp_path):
    src = tmp_path / "numbers.csv"
    src.write_text("Tracking Number\nMAEU1234567\n")
    assert run_cli(tmp_path, "batch", str(src)) == 2


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
