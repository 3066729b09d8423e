"""Tests for environment-driven configuration."""

import logging
from pathlib import Path

import pytest

from core import config


@pytest.mark.unit
class TestEnvHelpers:
    """Tests for the environment parsing helpers."""

    @pytest.mark.parametrize("raw", ["1", "true", "YES", " on ", "y"])
    def test_env_bool_truthy(self, monkeypatch, raw):
        monkeypatch.setenv("LAYER_TEST_FLAG", raw)

        assert config._env_bool("LAYER_TEST_FLAG") is True

    def test_env_bool_default(self, monkeypatch):
        monkeypatch.delenv("LAYER_TEST_FLAG", raising=False)

        assert config._env_bool("LAYER_TEST_FLAG") is False
        assert config._env_bool("LAYER_TEST_FLAG", default="true") is True

    def test_env_int(self, monkeypatch):
        monkeypatch.setenv("LAYER_TEST_INT", "42")

        assert config._env_int("LAYER_TEST_INT", 7) == 42

    def test_env_int_invalid_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("LAYER_TEST_INT", "many")

        assert config._env_int("LAYER_TEST_INT", 7) == 7
        assert "Ignoring non-integer value" in caplog.text


@pytest.mark.unit
class TestGetters:
    """Getters re-read the environment on every call."""

    def test_layer_catalog_path(self, monkeypatch):
        monkeypatch.delenv(config.LAYER_CATALOG_ENV, raising=False)
        assert config.get_layer_catalog_path() is None

        monkeypatch.setenv(config.LAYER_CATALOG_ENV, "/etc/layers.json")
        assert config.get_layer_catalog_path() == Path("/etc/layers.json")

    def test_mock_future_layer(self, monkeypatch):
        monkeypatch.setenv(config.MOCK_FUTURE_LAYER_ENV, "")
        assert config.get_mock_future_layer() is None

        monkeypatch.setenv(config.MOCK_FUTURE_LAYER_ENV, "fires,3D")
        assert config.get_mock_future_layer() == "fires,3D"

    def test_apply_date_adjustments(self, monkeypatch):
        monkeypatch.delenv("APPLY_DATE_ADJUSTMENTS", raising=False)
        assert config.get_apply_date_adjustments() is True

        monkeypatch.setenv("APPLY_DATE_ADJUSTMENTS", "false")
        assert config.get_apply_date_adjustments() is False

    def test_defaults(self):
        assert config.DEFAULT_GRANULE_COUNT == 20
        assert config.SUBDAILY_WINDOW_MINUTES == 60
        assert config.OPACITY_PRECISION == 2


@pytest.mark.unit
def test_configure_logging(monkeypatch):
    """configure_logging applies the shared format to the root logger."""
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    config.configure_logging("debug")

    assert calls == [{"level": logging.DEBUG, "format": config.LOG_FORMAT}]
