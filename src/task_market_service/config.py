"""
Configuration management for the task market service.

Loads configuration from YAML with ZERO defaults.
Every value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

REDACTION_MARKER = "***"
_SENSITIVE_KEY_PARTS: tuple[str, ...] = ("secret", "password", "token", "key")


class ServiceConfig(BaseModel):
    """Service identity configuration."""

    model_config = ConfigDict(extra="forbid")
    name: str
    version: str


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="forbid")
    host: str
    port: int
    log_level: str


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")
    level: str
    directory: str | None


class DatabaseConfig(BaseModel):
    """Database configuration."""

    model_config = ConfigDict(extra="forbid")
    path: str


class RequestConfig(BaseModel):
    """Request handling configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int
    operation_timeout_seconds: float


class NotificationsConfig(BaseModel):
    """Email and SMS gateway connection configuration."""

    model_config = ConfigDict(extra="forbid")
    email_base_url: str
    email_path: str
    sms_base_url: str
    sms_path: str
    timeout_seconds: int


class VerificationConfig(BaseModel):
    """Verification token lifetimes and rate limits."""

    model_config = ConfigDict(extra="forbid")
    email_token_ttl_hours: int
    email_rate_limit: int
    email_rate_window_hours: int
    phone_code_ttl_minutes: int
    phone_max_attempts: int
    phone_rate_limit: int
    phone_rate_window_hours: int


class LimitsConfig(BaseModel):
    """Input size limits."""

    model_config = ConfigDict(extra="forbid")
    max_title_length: int
    max_description_length: int


class Settings(BaseModel):
    """
    Root configuration container.

    All fields are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    request: RequestConfig
    notifications: NotificationsConfig
    verification: VerificationConfig
    limits: LimitsConfig


def get_config_path() -> Path:
    """Determine configuration file path from CONFIG_PATH or ./config.yaml."""
    env_path = os.environ.get("CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path.cwd() / "config.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings from the YAML config file.

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the file does not contain a YAML mapping
        pydantic.ValidationError: If any field is missing, extra or mistyped
    """
    config_path = get_config_path()
    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ValueError(msg)
    return Settings(**raw)


def clear_settings_cache() -> None:
    """Forget cached settings. Used in testing."""
    get_settings.cache_clear()


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTION_MARKER
            if any(part in key.lower() for part in _SENSITIVE_KEY_PARTS)
            else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def get_safe_config() -> dict[str, Any]:
    """Get configuration with sensitive values redacted."""
    redacted: dict[str, Any] = _redact(get_settings().model_dump())
    return redacted
