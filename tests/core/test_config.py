"""Tests for the Config system."""

import pytest
from birdie.core.config import BirdieConfig, _convert_value, _deep_merge, _substitute_env_vars
from birdie.core.errors import ConfigError


def test_default_config():
    config = BirdieConfig()

    assert config.playback.lang == "es"
    assert config.playback.ms_per_word == 250
    assert config.playback.response_allowance_ms == 5000
    assert config.playback.min_duration_ms == 7000
    assert config.cdp.port == 9222
    assert config.monitor.interval_ms == 2000
    assert config.monitor.min_interval_ms == 500
    assert config.monitor.max_interval_ms == 10000
    assert config.monitor.history_size == 10


def test_load_with_overrides(tmp_path):
    config = BirdieConfig.load(
        overrides={"cdp": {"port": 9333}, "playback": {"lang": "en"}},
        project_path=tmp_path / "missing.toml",
        user_path=tmp_path / "missing-user.toml",
    )

    assert config.cdp.port == 9333
    assert config.playback.lang == "en"
    assert config.playback.ms_per_word == 250


def test_toml_precedence(tmp_path):
    user = tmp_path / "user.toml"
    user.write_text('[cdp]\nport = 9300\nhost = "chrome-box"\n')
    project = tmp_path / "birdie.toml"
    project.write_text("[cdp]\nport = 9400\n")

    config = BirdieConfig.load(project_path=project, user_path=user)

    assert config.cdp.port == 9400
    assert config.cdp.host == "chrome-box"


def test_env_var_loading(monkeypatch, tmp_path):
    monkeypatch.setenv("BIRDIE_LANG", "pt")
    monkeypatch.setenv("BIRDIE_CDP_PORT", "9555")
    monkeypatch.setenv("BIRDIE_MONITOR_INTERVAL_MS", "750")

    config = BirdieConfig.load(
        project_path=tmp_path / "none.toml", user_path=tmp_path / "none2.toml"
    )

    assert config.playback.lang == "pt"
    assert config.cdp.port == 9555
    assert config.monitor.interval_ms == 750


def test_invalid_config_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        BirdieConfig.load(
            overrides={"cdp": {"port": "not-a-port"}},
            project_path=tmp_path / "none.toml",
            user_path=tmp_path / "none2.toml",
        )


def test_broken_toml_raises_config_error(tmp_path):
    bad = tmp_path / "birdie.toml"
    bad.write_text("[cdp\nport = ")
    with pytest.raises(ConfigError, match="Failed to load"):
        BirdieConfig.load(project_path=bad, user_path=tmp_path / "none.toml")


def test_env_var_substitution(monkeypatch):
    monkeypatch.setenv("MY_STT_KEY", "secret")
    data = {"speech": {"stt_api_key": "${MY_STT_KEY}"}, "list": ["${MY_STT_KEY}", 3]}
    _substitute_env_vars(data)
    assert data["speech"]["stt_api_key"] == "secret"
    assert data["list"] == ["secret", 3]


def test_deep_merge():
    base = {"cdp": {"port": 1, "host": "a"}}
    _deep_merge(base, {"cdp": {"port": 2}})
    assert base == {"cdp": {"port": 2, "host": "a"}}


def test_convert_value():
    assert _convert_value("true") is True
    assert _convert_value("no") is False
    assert _convert_value("9222") == 9222
    assert _convert_value("0.5") == 0.5
    assert _convert_value("es") == "es"
