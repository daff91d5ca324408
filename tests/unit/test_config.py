"""Tests for configuration loading."""

import pytest
import yaml
from pydantic import ValidationError

from mimirbridge.config import Settings, get_settings, load_yaml_config, reset_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.scrape_url == "http://localhost:8080/metrics"
        assert settings.push_url == "http://localhost:9009/api/v1/push"
        assert settings.scrape_interval_seconds == 5.0
        assert settings.http_timeout_seconds == 10.0
        assert settings.skip_empty_push is False
        assert settings.push_auth is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SCRAPE_URL", "http://app:9100/metrics")
        monkeypatch.setenv("SCRAPE_INTERVAL_SECONDS", "15")
        monkeypatch.setenv("SKIP_EMPTY_PUSH", "true")

        settings = Settings()

        assert settings.scrape_url == "http://app:9100/metrics"
        assert settings.scrape_interval_seconds == 15.0
        assert settings.skip_empty_push is True

    def test_invalid_url(self):
        with pytest.raises(ValidationError):
            Settings(push_url="ftp://mimir/push")

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(http_timeout_seconds=0)

    def test_push_auth(self):
        settings = Settings(push_username="bridge", push_password="secret")

        assert settings.push_auth == ("bridge", "secret")


class TestYamlConfig:
    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "bridge.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "scrape": {"url": "http://yaml-app/metrics", "interval_seconds": 30},
                    "push": {"url": "http://yaml-mimir/api/v1/push", "tenant_id": "ops"},
                    "bridge": {"send_metadata": True},
                    "logging": {"level": "DEBUG", "format": "text"},
                }
            )
        )
        return path

    def test_flattening(self, config_file):
        assert load_yaml_config(config_file) == {
            "scrape_url": "http://yaml-app/metrics",
            "scrape_interval_seconds": 30,
            "push_url": "http://yaml-mimir/api/v1/push",
            "tenant_id": "ops",
            "send_metadata": True,
            "log_level": "DEBUG",
            "log_format": "text",
        }

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(tmp_path / "absent.yaml") == {}

    def test_get_settings_reads_yaml(self, config_file):
        settings = get_settings(config_path=config_file, reload=True)

        assert settings.scrape_url == "http://yaml-app/metrics"
        assert settings.tenant_id == "ops"
        assert settings.log_format == "text"

    def test_environment_beats_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("TENANT_ID", "from-env")

        settings = get_settings(config_path=config_file, reload=True)

        assert settings.tenant_id == "from-env"
        assert settings.scrape_interval_seconds == 30

    def test_singleton(self):
        first = get_settings()

        assert get_settings() is first
        reset_settings()
        assert get_settings() is not first
