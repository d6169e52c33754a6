# tests/config/test_env.py

import os
import pytest

from ocean_tracking.config.env import (
    CACHE_TTL_VAR,
    DEADLINE_VAR,
    EARLY_EXIT_VAR,
    EnvError,
    PROVIDER_KEY_VARS,
    env as env_get,
    get_app_env,
    load_env,
    provider_credentials,
)


def _write_env_file(dirpath, text=""):
    f = dirpath / ".env"
    f.write_text(text)
    return f


def _clear_keys(monkeypatch, *names):
    for n in names:
        monkeypatch.delenv(n, raising=False)


def test_load_env_reads_file_and_sets_process_env_when_missing(tmp_path, monkeypatch):
    """
    When the variables are not already in the environment,
    load_env should populate os.environ from the file.
    """
    _clear_keys(monkeypatch, "MAERSK_API_KEY", "SHIPSGO_API_KEY")

    f = _write_env_file(tmp_path, "MAERSK_API_KEY=file_maersk\nSHIPSGO_API_KEY=file_shipsgo\n")

    loaded = load_env(f, override=False)
    assert loaded["MAERSK_API_KEY"] == "file_maersk"
    assert loaded["SHIPSGO_API_KEY"] == "file_shipsgo"

    assert os.environ["MAERSK_API_KEY"] == "file_maersk"
    assert os.environ["SHIPSGO_API_KEY"] == "file_shipsgo"


def test_env_overrides_dotenv_env_wins_with_get_app_env(tmp_path, monkeypatch):
    """Existing process env values win over the .env file."""
    f = _write_env_file(tmp_path, "MAERSK_API_KEY=file_maersk\nMSC_API_KEY=file_msc\n")
    monkeypatch.setenv("MAERSK_API_KEY", "env_maersk")

    cfg = get_app_env(f)

    assert cfg.credentials["maersk"] == "env_maersk"
    assert cfg.credentials["msc"] == "file_msc"
    assert cfg.has_credential("maersk")
    assert not cfg.has_credential("zim")


def test_load_env_strict_raises_on_missing_required(tmp_path):
    f = _write_env_file(tmp_path, "MAERSK_API_KEY=x\n")
    with pytest.raises(EnvError) as ei:
        load_env(f, required_keys=("MAERSK_API_KEY", "ZIM_API_KEY"), strict=True)
    assert "ZIM_API_KEY" in str(ei.value)


def test_blank_keys_are_not_credentials(monkeypatch):
    monkeypatch.setenv("COSCO_API_KEY", "   ")
    monkeypatch.setenv("ZIM_API_KEY", "zim-key")
    assert provider_credentials() == {"zim": "zim-key"}


def test_get_app_env_defaults_without_file():
    cfg = get_app_env(None)
    assert cfg.credentials == {}
    assert cfg.cache_ttl_seconds == 900
    assert cfg.early_exit_reliability == 0.9
    assert cfg.deadline_seconds is None


def test_get_app_env_strict_requires_one_credential(tmp_path):
    f = _write_env_file(tmp_path, "")
    with pytest.raises(EnvError):
        get_app_env(f, strict=True)


def test_get_app_env_reads_tunables(monkeypatch):
    monkeypatch.setenv(CACHE_TTL_VAR, "60")
    monkeypatch.setenv(EARLY_EXIT_VAR, "0.95")
    monkeypatch.setenv(DEADLINE_VAR, "12.5")
    cfg = get_app_env(None)
    assert cfg.cache_ttl_seconds == 60.0
    assert cfg.early_exit_reliability == 0.95
    assert cfg.deadline_seconds == 12.5


@pytest.mark.parametrize("value", ["soon", "-1", "0"])
def test_get_app_env_rejects_bad_tunables(monkeypatch, value):
    monkeypatch.setenv(CACHE_TTL_VAR, value)
    with pytest.raises(EnvError):
        get_app_env(None)


def test_zero_cache_ttl_is_an_env_error(monkeypatch):
    monkeypatch.setenv(CACHE_TTL_VAR, "0")
    with pytest.raises(EnvError) as ei:
        get_app_env(None)
    assert "greater than zero" in str(ei.value)


def test_env_accessor_required_default_and_cast(monkeypatch):
    monkeypatch.setenv("TRACKING_SOMETHING", "42")
    assert env_get("TRACKING_SOMETHING", cast=int) == 42
    assert env_get("TRACKING_MISSING", default="d") == "d"
    with pytest.raises(KeyError):
        env_get("TRACKING_MISSING", required=True)


def test_every_provider_has_a_key_var():
    assert len(PROVIDER_KEY_VARS) == 15
    assert all(v.endswith("_API_KEY") for v in PROVIDER_KEY_VARS.values())
