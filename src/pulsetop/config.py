"""
Configuration for pulsetop.

Settings come from, in increasing priority: built-in defaults, an optional
TOML file, and ``PULSETOP_*`` environment variables. Nested keys use a double
underscore in the environment, e.g. ``PULSETOP_CONNECTION__MAX_DELAY=30``.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator

from pulsetop.errors import ConfigurationError
from pulsetop.models import Topic

ENV_PREFIX = "PULSETOP_"


class ConnectionSettings(BaseModel):
    """Reconnection backoff, in seconds."""

    base_delay: float = Field(default=1.0, gt=0)
    max_delay: float = Field(default=10.0, gt=0)


class Settings(BaseModel):
    """Top-level settings."""

    backend_url: str = "http://localhost:8080"
    ws_url: str = "ws://localhost:8080"
    request_timeout: float = Field(default=10.0, gt=0)
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    history_size: int = Field(default=60, ge=1)
    page_size: int = Field(default=100, ge=1)
    authoritative_topic: Topic | None = None
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_file: Path | None = None

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("backend_url", "ws_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("authoritative_topic", mode="before")
    @classmethod
    def any_topic(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("", "any", "none"):
            return None
        return v

    def topic_url(self, topic: Topic) -> str:
        """WebSocket endpoint for a topic."""
        return f"{self.ws_url}/ws/{topic.value}"


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = key[len(ENV_PREFIX):].lower().split("__")
        target = overrides
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = value
    return overrides


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """
    Load settings from file and environment.

    Args:
        path: Optional TOML file.
        env: Environment mapping, ``os.environ`` when omitted.
        **overrides: Highest-priority values, e.g. from the command line.

    Raises:
        ConfigurationError: The file is unreadable or a value fails validation.
    """
    data: dict[str, Any] = {}
    if path is not None:
        try:
            data = toml.load(path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    data = _merge(data, _env_overrides(os.environ if env is None else env))
    data = _merge(data, {k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
