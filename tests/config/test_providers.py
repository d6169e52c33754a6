from ocean_tracking.config.providers import PROVIDER_TABLE, build_provider_configs, provider_names
from ocean_tracking.models import EnvCfg, TrackingKind


def test_table_covers_all_providers_without_credentials():
    names = provider_names()
    assert len(names) == 15
    assert len(set(names)) == 15
    assert not any(p.has_credential or p.api_key for p in PROVIDER_TABLE)


def test_build_provider_configs_keeps_only_credentialed():
    cfgs = build_provider_configs(EnvCfg(credentials={"maersk": "m-key", "shipsgo": "s-key", "zim": ""}))
    assert [c.name for c in cfgs] == ["maersk", "shipsgo"]
    assert all(c.has_credential for c in cfgs)
    assert cfgs[0].api_key == "m-key"


def test_build_provider_configs_only_filter():
    env_cfg = EnvCfg(credentials={"maersk": "m", "msc": "x"})
    cfgs = build_provider_configs(env_cfg, only=["msc"])
    assert [c.name for c in cfgs] == ["msc"]


def test_api_key_is_hidden_from_repr_and_dict():
    cfg = build_provider_configs(EnvCfg(credentials={"maersk": "super-secret"}))[0]
    assert "super-secret" not in repr(cfg)
    d = cfg.to_dict()
    assert "api_key" not in d
    assert d["cost_tier"] == "paid"
    assert "container" in d["supported_kinds"]


def test_vessel_trackers_only_support_containers():
    by_name = {p.name: p for p in PROVIDER_TABLE}
    for name in ("marine-traffic", "vessel-finder", "track-trace"):
        assert by_name[name].supports(TrackingKind.CONTAINER)
        assert not by_name[name].supports(TrackingKind.BOOKING)
        assert by_name[name].supports(None)
