"""
Tests for configuration loading, defaults and environment overrides.
"""

import logging

import pytest
import yaml

from config_loader import (
    load_config,
    parse_manual_devices,
    get_sample_config,
    TimezoneFormatter,
)

MINIMAL = {
    "device": {},
    "polling": {"status_interval_seconds": 1},
}


@pytest.fixture
def write_config(tmp_path):
    def _write(data) -> str:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)
    return _write


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    monkeypatch.delenv("HDHR_AUTO_DISCOVERY", raising=False)
    monkeypatch.delenv("HDHR_MANUAL_DEVICES", raising=False)


@pytest.mark.unit
class TestLoadConfig:
    """YAML loading and validation"""

    def test_defaults_applied(self, write_config):
        config = load_config(write_config(MINIMAL))

        assert config["device"]["binary"] == "hdhomerun_config"
        assert config["device"]["poll_timeout_seconds"] == 0.75
        assert config["device"]["command_timeout_seconds"] == 5
        assert config["device"]["scan_timeout_seconds"] == 90
        assert config["discovery"]["auto_discovery"] is True
        assert config["discovery"]["manual_devices"] == []
        assert config["discovery"]["host_cache_ttl_seconds"] == 300
        assert config["discovery"]["cloud_url"] == "https://api.hdhomerun.com/discover"
        assert config["polling"]["program_max_retries"] == 3
        assert config["api"]["port"] == 3000
        assert config["logging"]["timezone"] == "America/New_York"

    def test_explicit_values_kept(self, write_config):
        data = {
            "device": {"command_timeout_seconds": 8},
            "polling": {"status_interval_seconds": 2},
            "api": {"port": 8080},
        }

        config = load_config(write_config(data))

        assert config["device"]["command_timeout_seconds"] == 8
        assert config["polling"]["status_interval_seconds"] == 2
        assert config["api"]["port"] == 8080
        assert config["api"]["host"] == "0.0.0.0"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_missing_file_logs_example(self, tmp_path, caplog):
        with caplog.at_level(logging.ERROR), pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

        assert "Example configuration" in caplog.text
        assert "status_interval_seconds: 1" in caplog.text

    def test_missing_section(self, write_config):
        with pytest.raises(ValueError, match="polling"):
            load_config(write_config({"device": {}}))

    def test_empty_device_section_allowed(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("device:\npolling:\n  status_interval_seconds: 1\n")

        config = load_config(str(path))

        assert config["device"]["binary"] == "hdhomerun_config"

    def test_interval_required(self, write_config):
        with pytest.raises(ValueError, match="status_interval_seconds"):
            load_config(write_config({"device": {}, "polling": {}}))

    def test_interval_must_be_positive(self, write_config):
        with pytest.raises(ValueError, match="positive"):
            load_config(write_config({"device": {}, "polling": {"status_interval_seconds": 0}}))

    def test_slow_poll_timeout_warns(self, write_config, caplog):
        data = {"device": {"poll_timeout_seconds": 2}, "polling": {"status_interval_seconds": 1}}

        with caplog.at_level(logging.WARNING):
            load_config(write_config(data))

        assert "poll_timeout_seconds" in caplog.text

    def test_manual_devices_string_in_yaml(self, write_config):
        data = dict(MINIMAL, discovery={"manual_devices": "192.168.1.50, tuner.lan"})

        config = load_config(write_config(data))

        assert config["discovery"]["manual_devices"] == ["192.168.1.50", "tuner.lan"]

    def test_sample_config_is_valid(self, write_config):
        config = load_config(write_config(get_sample_config()))

        assert config["discovery"]["manual_devices"] == ["192.168.1.50"]


@pytest.mark.unit
class TestEnvironmentOverrides:
    """HDHR_* variables override the YAML discovery section"""

    def test_auto_discovery_off(self, write_config, monkeypatch):
        monkeypatch.setenv("HDHR_AUTO_DISCOVERY", "false")

        config = load_config(write_config(MINIMAL))

        assert config["discovery"]["auto_discovery"] is False

    def test_auto_discovery_on(self, write_config, monkeypatch):
        monkeypatch.setenv("HDHR_AUTO_DISCOVERY", "Yes")
        data = dict(MINIMAL, discovery={"auto_discovery": False})

        config = load_config(write_config(data))

        assert config["discovery"]["auto_discovery"] is True

    def test_manual_devices(self, write_config, monkeypatch):
        monkeypatch.setenv("HDHR_MANUAL_DEVICES", "10.0.0.5 10.0.0.6,10.0.0.7")
        data = dict(MINIMAL, discovery={"manual_devices": ["192.168.1.50"]})

        config = load_config(write_config(data))

        assert config["discovery"]["manual_devices"] == ["10.0.0.5", "10.0.0.6", "10.0.0.7"]


@pytest.mark.unit
class TestParseManualDevices:
    """Host list parsing"""

    @pytest.mark.parametrize("value, expected", [
        (None, []),
        ("", []),
        ("192.168.1.50", ["192.168.1.50"]),
        ("a, b,,c ", ["a", "b", "c"]),
        ("a\nb\tc", ["a", "b", "c"]),
        (["a", " b "], ["a", "b"]),
    ])
    def test_parse(self, value, expected):
        assert parse_manual_devices(value) == expected


@pytest.mark.unit
class TestTimezoneFormatter:
    """Log timestamps in the configured zone"""

    def test_zone_abbreviation(self):
        formatter = TimezoneFormatter("%(asctime)s %(message)s", "UTC")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
        record.created = 0

        assert formatter.format(record) == "1970-01-01 00:00:00 UTC hello"
