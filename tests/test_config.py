"""Tests for settings loading and endpoint construction."""

from __future__ import annotations

import os

import pytest
from conftest import make_settings
from pydantic import ValidationError

from dockins.config import EngineConfig, LoggingConfig, Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """Run every test from an empty directory with no DOCKINS_* variables."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("DOCKINS_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()


class TestDefaults:
    def test_engine_defaults(self):
        s = Settings()
        assert s.engine.uri is None
        assert s.engine.binary == "docker"
        assert s.engine.verbose is False
        assert s.driver.name == "cli"

    def test_endpoint_without_host(self):
        endpoint = Settings().endpoint()
        assert endpoint.uri is None
        assert dict(endpoint.env) == {}


class TestSources:
    def test_toml_file(self, tmp_path):
        (tmp_path / "dockins.toml").write_text(
            '[engine]\nuri = "tcp://build-host:2376"\nverbose = true\n'
        )
        s = Settings()
        assert s.engine.uri == "tcp://build-host:2376"
        assert s.engine.verbose is True

    def test_env_overrides_toml(self, tmp_path, monkeypatch):
        (tmp_path / "dockins.toml").write_text('[engine]\nuri = "tcp://from-toml:2376"\n')
        monkeypatch.setenv("DOCKINS_ENGINE__URI", "tcp://from-env:2376")
        assert Settings().engine.uri == "tcp://from-env:2376"

    def test_unknown_key_rejected(self, tmp_path):
        (tmp_path / "dockins.toml").write_text('[engine]\nurl = "tcp://typo:2376"\n')
        with pytest.raises(ValidationError):
            Settings()

    def test_singleton_is_cached(self):
        assert get_settings() is get_settings()


class TestValidators:
    def test_blank_uri_becomes_none(self):
        assert EngineConfig(uri="  ").uri is None

    def test_empty_binary_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(binary=" ")

    def test_log_level_upper_cased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"


class TestEndpoint:
    def test_tls_settings_projected_into_env(self):
        s = make_settings(
            engine=EngineConfig(
                uri="tcp://h:2376",
                env={"DOCKER_CONFIG": "/cfg"},
                tls_verify=True,
                cert_path="/certs",
            )
        )
        endpoint = s.endpoint()
        assert endpoint.uri == "tcp://h:2376"
        assert dict(endpoint.env) == {
            "DOCKER_CONFIG": "/cfg",
            "DOCKER_TLS_VERIFY": "1",
            "DOCKER_CERT_PATH": "/certs",
        }

    def test_endpoint_env_is_read_only(self):
        endpoint = make_settings(engine=EngineConfig(env={"A": "1"})).endpoint()
        with pytest.raises(TypeError):
            endpoint.env["A"] = "2"  # type: ignore[index]
