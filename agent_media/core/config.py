"""
Configuration management for agent-media.

This module provides:
- Pydantic Settings for environment variable loading
- Structured configuration sections (app, output, providers, media)
- CLI option merging on top of environment configuration
"""

import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_OUTPUT_DIR = ".agent-media"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_FORMAT = "console"


class AppConfig(BaseSettings):
    """Toolkit identity and logging."""
    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = Field(default="agent-media", validation_alias="APP_NAME")
    version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    # Free-form label reported in metrics only
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    # Logging
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, validation_alias="LOG_LEVEL")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT, validation_alias="LOG_FORMAT")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        # Unknown values fall back to the default
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        level = v.strip().upper()
        return level if level in allowed else DEFAULT_LOG_LEVEL

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.strip().lower()
        return fmt if fmt in ('json', 'console') else DEFAULT_LOG_FORMAT


class OutputConfig(BaseSettings):
    """Where generated media is written."""
    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore"
    )

    output_dir: str | None = Field(default=None, validation_alias="AGENT_MEDIA_DIR")

    def resolved_output_dir(self) -> str:
        """Absolute output directory, defaulting to ./.agent-media."""
        if self.output_dir:
            return str(Path(self.output_dir).resolve())
        return str((Path.cwd() / DEFAULT_OUTPUT_DIR).resolve())


class ProviderConfig(BaseSettings):
    """Remote provider credentials and HTTP behaviour."""
    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore"
    )

    fal_api_key: SecretStr = Field(default="", validation_alias="FAL_API_KEY")
    replicate_api_token: SecretStr = Field(default="", validation_alias="REPLICATE_API_TOKEN")
    runpod_api_key: SecretStr = Field(default="", validation_alias="RUNPOD_API_KEY")
    ai_gateway_api_key: SecretStr = Field(default="", validation_alias="AI_GATEWAY_API_KEY")

    # HTTP settings
    http_timeout: float = Field(default=120.0, validation_alias="AGENT_MEDIA_HTTP_TIMEOUT")
    max_retry_attempts: int = Field(default=3, validation_alias="AGENT_MEDIA_MAX_RETRIES")

    # Polling for asynchronous prediction APIs (seconds)
    poll_interval: float = Field(default=2.0, validation_alias="AGENT_MEDIA_POLL_INTERVAL")
    max_poll_wait: int = Field(default=600, validation_alias="AGENT_MEDIA_MAX_POLL_WAIT")

    def get_secret(self, env_var: str) -> str:
        """Configured value for a credential environment variable name."""
        field_name = env_var.lower()
        value = getattr(self, field_name, None)
        if isinstance(value, SecretStr):
            return value.get_secret_value()
        return ""


class MediaConfig(BaseSettings):
    """Local media processing configuration."""
    model_config = SettingsConfigDict(
        env_prefix="MEDIA_",
        case_sensitive=False,
        extra="ignore"
    )

    ffmpeg_binary: str = Field(default="ffmpeg")
    extract_timeout: int = Field(default=600)  # 10 minutes
    ml_device: str = Field(default="cpu")


class Settings:
    """Every configuration section, read from the environment."""

    def __init__(self):
        self.app = AppConfig()
        self.output = OutputConfig()
        self.providers = ProviderConfig()
        self.media = MediaConfig()

    def reload(self) -> None:
        """Re-read every section, e.g. after a .env file was loaded."""
        self.__init__()


@dataclass
class MergedConfig:
    """Effective per-invocation configuration after applying CLI options."""
    output_dir: str
    provider: str | None = None
    output_name: str | None = None


def merge_config(
    config: Settings,
    out: str | None = None,
    provider: str | None = None,
    name: str | None = None,
) -> MergedConfig:
    """
    Merge CLI options with environment configuration.

    CLI options take precedence over environment config.
    """
    return MergedConfig(
        output_dir=str(Path(out).resolve()) if out else config.output.resolved_output_dir(),
        provider=provider or None,
        output_name=name or None,
    )


def get_credential(env_var: str) -> str:
    """Credential from the process environment, then from loaded settings."""
    value = os.getenv(env_var)
    if value:
        return value
    return settings.providers.get_secret(env_var)


# Built at import; cli.main() reloads it after reading .env
settings = Settings()


def get_test_settings() -> Settings:
    """
    Settings for tests: testing environment, debug logging and no provider
    credentials, regardless of the developer's shell or .env.
    """
    test_settings = Settings()
    test_settings.app = AppConfig(ENVIRONMENT="testing", LOG_LEVEL="DEBUG")
    test_settings.providers = ProviderConfig(
        FAL_API_KEY="",
        REPLICATE_API_TOKEN="",
        RUNPOD_API_KEY="",
        AI_GATEWAY_API_KEY="",
    )
    return test_settings
