import json

import pytest

from detect_filter.core.preprocessor import PreprocessVariant
from detect_filter.core.settings import PROPERTIES, FilterSettings, clamp_threshold
from detect_filter.utils.config import Config
from detect_filter.utils.failures import ConfigError


def test_defaults_match_host_surface():
    assert FilterSettings.defaults() == {
        "confidence_threshold": 0.2,
        "model_path": "",
        "log": False,
        "preprocess": "color",
    }
    threshold = next(p for p in PROPERTIES if p.key == "confidence_threshold")
    assert (threshold.minimum, threshold.maximum, threshold.step) == (0.01, 1.0, 0.01)


def test_from_mapping_fills_defaults_and_coerces():
    settings = FilterSettings.from_mapping({"log": "yes", "confidence_threshold": "0.7", "model_path": None})
    assert settings == FilterSettings(model_path="", confidence_threshold=0.7, log=True)


@pytest.mark.parametrize("raw,expected", [(0.0, 0.01), (3, 1.0), ("bogus", 0.2), (0.35, 0.35)])
def test_clamp_threshold(raw, expected):
    assert clamp_threshold(raw) == expected


def test_unknown_preprocess_rejected():
    with pytest.raises(ConfigError):
        FilterSettings.from_mapping({"preprocess": "transposed"})


def test_round_trip_mapping():
    settings = FilterSettings("m.pt", 0.5, True, PreprocessVariant.LAPLACIAN)
    assert FilterSettings.from_mapping(settings.to_mapping()) == settings


def test_config_merges_files_in_order(tmp_path):
    (tmp_path / "a.json").write_text(json.dumps({"filter": {"model_path": "a.pt", "log": True}}))
    (tmp_path / "b.json").write_text(json.dumps({"filter": {"model_path": "b.pt"}}))
    (tmp_path / "broken.json").write_text("{not json")

    config = Config(str(tmp_path), load_env=False)

    assert config.get("filter.model_path") == "b.pt"
    assert config.get_bool("filter.log") is True
    assert config.get("filter.missing", "x") == "x"
    assert FilterSettings.from_config(config).model_path == "b.pt"


def test_config_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("DETECT_FILTER_MODEL_PATH", "/models/env.pt")
    monkeypatch.setenv("DETECT_FILTER_THRESHOLD", "0.6")
    monkeypatch.setenv("DETECT_FILTER_LOG", "true")

    settings = FilterSettings.from_config(Config(str(tmp_path)))

    assert settings.model_path == "/models/env.pt"
    assert settings.confidence_threshold == 0.6
    assert settings.log is True


def test_packaged_config_defaults():
    config = Config(load_env=False)
    assert FilterSettings.from_config(config) == FilterSettings()
    assert config.get_int("host.render_fps") == 30


def test_config_typed_getters_and_save(tmp_path):
    config = Config(str(tmp_path), load_env=False)
    config.set("host.tick_rate", "12")
    config.set("host.flag", "off")

    assert config.get_int("host.tick_rate") == 12
    assert config.get_float("host.tick_rate") == 12.0
    assert config.get_int("host.nothing", 3) == 3
    assert config.get_bool("host.flag", True) is False

    out = tmp_path / "saved"
    out.mkdir()
    config.save_to_file(str(out / "all.json"))
    assert Config(str(out), load_env=False).get("host.tick_rate") == "12"
