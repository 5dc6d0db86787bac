"""
FreshBooks MCP configuration.

Uses pydantic-settings for type-safe configuration with TOML file support
and environment variable overrides.

Resolution priority (highest wins):
  1. Init arguments
  2. Environment variables (FRESHBOOKS_MCP_ prefix, e.g. FRESHBOOKS_MCP_API__TIMEOUT)
  3. TOML config file (~/.freshbooks-mcp/config.toml)
  4. Built-in defaults
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from freshbooks_mcp.exceptions import ConfigError

# Default config file location
CONFIG_DIR = Path.home() / ".freshbooks-mcp"
CONFIG_PATH = CONFIG_DIR / "config.toml"

Environment = Literal["development", "test", "production"]

_ENVIRONMENT_ALIASES: dict[str, Environment] = {
    "production": "production",
    "prod": "production",
    "test": "test",
    "testing": "test",
    "development": "development",
    "dev": "development",
}


class ApiConfig(BaseModel):
    """FreshBooks HTTP API settings.

    max_retries counts total attempts, including the first one.
    Backoff doubles from base_backoff_ms up to max_backoff_ms unless the
    server sends an explicit Retry-After.
    """

    base_url: str = "https://api.freshbooks.com"
    timeout: float = 30.0
    max_retries: int = Field(default=3, ge=1)
    base_backoff_ms: int = Field(default=1000, ge=0)
    max_backoff_ms: int = Field(default=60000, ge=0)


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = "INFO"
    format: Literal["console", "json"] = "console"


class TracingConfig(BaseModel):
    """OpenTelemetry tracing configuration."""

    console: bool = False
    otlp_endpoint: str | None = None


class AuthConfig(BaseModel):
    """Authentication hints surfaced on auth errors."""

    auth_url_hint: str | None = None


class TomlSource(PydanticBaseSettingsSource):
    """Settings source that reads the default TOML file, if present."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Unused: __call__ returns the whole document
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        path = CONFIG_PATH
        if path.exists():
            try:
                with open(path, "rb") as f:
                    return tomllib.load(f)
            except (OSError, ValueError):
                pass
        return {}


class FreshBooksMCPConfig(BaseSettings):
    """Root configuration for the FreshBooks MCP server.

    The legacy ``ENVIRONMENT`` variable is honored when
    ``FRESHBOOKS_MCP_ENVIRONMENT`` is not set.
    """

    model_config = SettingsConfigDict(
        env_prefix="FRESHBOOKS_MCP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: Environment = "development"
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: Any) -> Environment:
        return _ENVIRONMENT_ALIASES.get(str(value or "").strip().lower(), "development")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlSource(settings_cls),
            file_secret_settings,
        )

    def model_post_init(self, __context: Any) -> None:
        """Apply the legacy ENVIRONMENT override after normal loading."""
        if "FRESHBOOKS_MCP_ENVIRONMENT" in os.environ or "environment" in self.model_fields_set:
            return
        legacy = os.getenv("ENVIRONMENT")
        if legacy:
            object.__setattr__(self, "environment", self._normalize_environment(legacy))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def load(cls, config_path: Path | None = None) -> FreshBooksMCPConfig:
        """Load configuration.

        Args:
            config_path: Explicit TOML file.  Its values are passed as init
                         arguments and therefore win over environment
                         variables.  Without it the default file is read
                         with normal precedence (env > TOML).

        Raises:
            ConfigError: if the explicit file cannot be parsed or holds
                         invalid values.
        """
        if config_path and config_path.exists():
            try:
                with open(config_path, "rb") as f:
                    toml_data = tomllib.load(f)
                return cls(**toml_data)
            except (OSError, tomllib.TOMLDecodeError, ValidationError) as exc:
                raise ConfigError(f"Invalid config file {config_path}: {exc}") from exc

        return cls()


_config: FreshBooksMCPConfig | None = None


def get_config() -> FreshBooksMCPConfig:
    """Process-wide configuration, loaded on first use and cached."""
    global _config
    if _config is None:
        _config = FreshBooksMCPConfig.load()
    return _config


def set_config(config: FreshBooksMCPConfig | None) -> None:
    """Install *config* as the process-wide configuration (``None`` resets it)."""
    global _config
    _config = config


def get_environment() -> Environment:
    """Current deployment environment from the cached configuration."""
    return get_config().environment


def is_production() -> bool:
    return get_environment() == "production"


def is_development() -> bool:
    return get_environment() == "development"


def is_test() -> bool:
    return get_environment() == "test"
