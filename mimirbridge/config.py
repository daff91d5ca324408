"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# YAML section -> {yaml key: settings field}
YAML_SECTIONS: dict[str, dict[str, str]] = {
    "scrape": {
        "url": "scrape_url",
        "interval_seconds": "scrape_interval_seconds",
    },
    "push": {
        "url": "push_url",
        "tenant_id": "tenant_id",
        "username": "push_username",
        "password": "push_password",
    },
    "bridge": {
        "http_timeout_seconds": "http_timeout_seconds",
        "skip_empty_push": "skip_empty_push",
        "send_metadata": "send_metadata",
    },
    "logging": {
        "level": "log_level",
        "format": "log_format",
    },
}


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Priority:
    1. Explicitly provided config_path
    2. ~/.mimirbridge/config.yaml (default location)
    3. Empty dict if no file exists

    Args:
        config_path: Optional path to config file

    Returns:
        Dictionary of configuration values (flattened from nested YAML)
    """
    if config_path is None:
        config_path = Path.home() / ".mimirbridge" / "config.yaml"

    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            yaml_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        import warnings

        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}

    flattened = {}
    for section, keys in YAML_SECTIONS.items():
        values = yaml_data.get(section) or {}
        for key, field_name in keys.items():
            if key in values:
                flattened[field_name] = values[key]

    return flattened


_config_path: Path | None = None


class YamlSettingsSource(PydanticBaseSettingsSource):
    """
    Custom settings source that loads configuration from YAML file.

    This allows YAML config to be loaded with proper priority in the settings chain.
    """

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        """Not used since we override __call__."""
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        return load_yaml_config(_config_path)


class Settings(BaseSettings):
    """
    Bridge configuration settings.

    Configuration priority (highest to lowest):
    1. Environment variables (e.g., SCRAPE_URL=http://app:8080/metrics)
    2. YAML configuration file (~/.mimirbridge/config.yaml)
    3. Default values defined in this class
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    scrape_url: str = Field(
        default="http://localhost:8080/metrics",
        description="Endpoint exposing metrics in text-exposition format",
    )
    push_url: str = Field(
        default="http://localhost:9009/api/v1/push",
        description="Remote-write endpoint of the metrics store",
    )
    scrape_interval_seconds: float = Field(
        default=5.0, gt=0, description="Seconds between scrape-push cycles"
    )
    http_timeout_seconds: float = Field(
        default=10.0, gt=0, le=300, description="Timeout for each HTTP exchange"
    )

    tenant_id: str | None = Field(
        default=None, description="Tenant sent as X-Scope-OrgID on push"
    )
    push_username: str | None = Field(
        default=None, description="Basic auth user for the push endpoint"
    )
    push_password: str | None = Field(
        default=None, description="Basic auth password for the push endpoint"
    )

    skip_empty_push: bool = Field(
        default=False, description="Do not push batches without time series"
    )
    send_metadata: bool = Field(
        default=False, description="Attach HELP/TYPE metadata to write requests"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json", description="Log format"
    )

    @field_validator("scrape_url", "push_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL."""
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @property
    def push_auth(self) -> tuple[str, str] | None:
        """Basic auth credentials for push, if configured."""
        if self.push_username is None:
            return None
        return self.push_username, self.push_password or ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.

        Priority order (highest to lowest):
        1. Explicit kwargs (init_settings) - for testing and programmatic config
        2. Environment variables
        3. YAML configuration file
        4. .env file
        5. Field defaults
        """
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls),
            dotenv_settings,
        )


_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """
    Get global settings instance.

    Args:
        config_path: Optional path to YAML config file (defaults to ~/.mimirbridge/config.yaml)
        reload: If True, force reload settings (useful for testing)

    Returns:
        Settings instance with merged configuration
    """
    global _settings, _config_path
    if _settings is None or reload:
        _config_path = config_path

        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings, _config_path
    _settings = None
    _config_path = None
