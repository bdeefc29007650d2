"""
Unit tests for configuration loading.
"""

import logging

import pytest

from asset_kpi.settings import EngineConfig, configure_logging, load_config


def test_packaged_config_loads():
    config = load_config()

    assert config["thresholds"]["microstop_seconds"] == 180
    assert config["repair"]["clock_skew_tolerance_seconds"] == 60


def test_defaults_match_packaged_config():
    assert EngineConfig.from_file() == EngineConfig()


def test_missing_file_falls_back_to_defaults(tmp_path):
    config = load_config(str(tmp_path / "missing.yaml"))

    assert config["thresholds"]["long_stop_seconds"] == 1800


def test_invalid_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("thresholds: [180, 300\n")

    assert load_config(str(path))["thresholds"]["microstop_seconds"] == 180


def test_non_mapping_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")

    assert load_config(str(path))["reporting"]["decimal_places"] == 2


def test_partial_file_merges_with_defaults(tmp_path):
    path = tmp_path / "partial.yaml"
    path.write_text("thresholds:\n  microstop_seconds: 120\nreporting:\n  include_intervals: false\n")

    config = EngineConfig.from_file(str(path))

    assert config.microstop_threshold_seconds == 120
    assert config.short_stop_threshold_seconds == 300
    assert config.include_intervals is False
    assert config.coalesce_intervals is True


def test_environment_overrides(tmp_path, monkeypatch):
    path = tmp_path / "kpi.yaml"
    path.write_text("thresholds:\n  microstop_seconds: 120\n")
    monkeypatch.setenv("KPI_CONFIG_PATH", str(path))
    monkeypatch.setenv("KPI_CLOCK_SKEW_TOLERANCE_SECONDS", "30")
    monkeypatch.setenv("KPI_DECIMAL_PLACES", "3")
    monkeypatch.delenv("KPI_MICROSTOP_THRESHOLD_SECONDS", raising=False)

    config = EngineConfig.from_env()

    assert config.microstop_threshold_seconds == 120
    assert config.clock_skew_tolerance_seconds == 30
    assert config.decimal_places == 3

    monkeypatch.setenv("KPI_MICROSTOP_THRESHOLD_SECONDS", "90")
    assert EngineConfig.from_env().microstop_threshold_seconds == 90


class TestConfigureLogging:
    """Root logging setup for hosts."""

    @pytest.fixture
    def basic_config_calls(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        return calls

    def test_defaults_to_info(self, basic_config_calls, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        configure_logging()

        assert basic_config_calls == [{"level": "INFO"}]

    def test_reads_log_level_from_environment(self, basic_config_calls, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        configure_logging()

        assert basic_config_calls == [{"level": "DEBUG"}]

    def test_explicit_level_wins(self, basic_config_calls, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        configure_logging("warning")

        assert basic_config_calls == [{"level": "WARNING"}]
