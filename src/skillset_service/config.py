"""
Configuration management for the skillset service.

Loads configuration from YAML with ZERO defaults for required sections.
Every required value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

REDACTION_MARKER = "***REDACTED***"

_SENSITIVE_KEYS: frozenset[str] = frozenset({"api_key", "password", "secret", "token"})


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
    directory: str
    retention_days: int = Field(default=14, ge=1)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    model_config = ConfigDict(extra="forbid")
    path: str


class RequestConfig(BaseModel):
    """Request handling configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int


class AuthConfig(BaseModel):
    """Session and password hashing configuration."""

    model_config = ConfigDict(extra="forbid")
    session_cookie_name: str
    session_ttl_seconds: int
    cookie_secure: bool
    password_hash_rounds: int
    admin_usernames: list[str]


class LimitsConfig(BaseModel):
    """Input limits for credentials."""

    model_config = ConfigDict(extra="forbid")
    max_username_length: int
    min_password_length: int
    max_password_length: int


class StorageConfig(BaseModel):
    """Object storage configuration."""

    model_config = ConfigDict(extra="forbid")
    root_path: str
    namespace: str
    public_base_url: str
    upload_url_ttl_seconds: int
    signing_key_path: str
    max_object_size: int


class ContactConfig(BaseModel):
    """Email provider configuration for the contact form."""

    model_config = ConfigDict(extra="forbid")
    base_url: str
    send_path: str
    api_key: str
    from_email: str
    to_email: str
    timeout_seconds: int


class PriceConfig(BaseModel):
    """Token price API configuration."""

    model_config = ConfigDict(extra="forbid")
    base_url: str
    token_address: str
    timeout_seconds: int


class SeedConfig(BaseModel):
    """Optional task catalog seed file."""

    model_config = ConfigDict(extra="forbid")
    tasks_path: str


class Settings(BaseModel):
    """
    Root configuration container.

    All sections except ``seed`` are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    request: RequestConfig
    auth: AuthConfig
    limits: LimitsConfig
    storage: StorageConfig
    contact: ContactConfig
    price: PriceConfig
    seed: SeedConfig | None = None


def get_config_path() -> Path:
    """Determine configuration file path from CONFIG_PATH or the working directory."""
    env_path = os.environ.get("CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path.cwd() / "config.yaml"


def load_settings(config_path: Path) -> Settings:
    """Parse and validate a YAML configuration file."""
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ValueError(msg)
    return Settings(**raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return load_settings(get_config_path())


def clear_settings_cache() -> None:
    """Drop cached settings. Used in testing."""
    get_settings.cache_clear()


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTION_MARKER if key in _SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def get_safe_config() -> dict[str, Any]:
    """Get configuration with sensitive values redacted."""
    redacted: dict[str, Any] = _redact(get_settings().model_dump())
    return redacted
