"""Centralized configuration — Pydantic BaseSettings with TOML + dotenv sources.

Settings live in dockins.toml. Environment variables override it using the
``DOCKINS_`` prefix and ``__`` as the nested delimiter
(e.g. ``DOCKINS_ENGINE__URI=tcp://build-host:2376``).

Priority (highest wins): init args > env vars > .env > dockins.toml

Usage::

    from dockins.config import get_settings

    s = get_settings()
    endpoint = s.endpoint()
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from dockins.types import EngineEndpoint

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in dockins.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models — reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class EngineConfig(_StrictModel):
    uri: str | None = None  # passed as `docker -H <uri>`; None = CLI default
    env: dict[str, str] = {}  # extra environment for every engine invocation
    binary: str = "docker"
    verbose: bool = False  # echo commands and engine stdout to the log sink
    tls_verify: bool = False
    cert_path: str | None = None

    @field_validator("uri")
    @classmethod
    def blank_uri_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("binary")
    @classmethod
    def validate_binary(cls, v: str) -> str:
        binary = v.strip()
        if not binary:
            raise ValueError("engine binary cannot be empty")
        return binary


class DriverConfig(_StrictModel):
    name: str = "cli"


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


class PluginConfig(_StrictModel):
    enabled: bool = True


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="dockins.toml",
        env_file=".env",
        env_prefix="DOCKINS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    engine: EngineConfig = EngineConfig()
    driver: DriverConfig = DriverConfig()
    logging: LoggingConfig = LoggingConfig()
    plugins: dict[str, PluginConfig] = {}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > dockins.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def endpoint(self) -> EngineEndpoint:
        """Build the immutable endpoint handed to the driver."""
        env = dict(self.engine.env)
        if self.engine.tls_verify:
            env["DOCKER_TLS_VERIFY"] = "1"
        if self.engine.cert_path:
            env["DOCKER_CERT_PATH"] = self.engine.cert_path
        return EngineEndpoint(uri=self.engine.uri, env=env)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
