"""Settings for the plugin host itself.

Host settings live in a TOML file, are merged onto defaults and may be
overridden with ``MODHOST__SECTION__KEY`` environment variables. Plugin
configuration (``config.yml`` per plugin) is handled separately by
:mod:`plugins.configuration`.
"""

from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigError, ConfigParseError, wrap_exception

ENV_PREFIX = "MODHOST__"


class AppConfig(BaseModel):
    """Application runtime config."""

    model_config = ConfigDict(extra="allow")

    name: str = "modhost"
    debug: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="allow")

    level: str = "INFO"
    format: str = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
    file_path: str | None = None
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()


class PluginsConfig(BaseModel):
    """Where plugin bundles and plugin data directories live."""

    model_config = ConfigDict(extra="allow")

    bundles_dir: Path = Path("plugins")
    data_dir: Path = Path("plugins")
    load_workers: int = Field(default=1, ge=1)
    disabled: list[str] = Field(default_factory=list)


class HostConfig(BaseModel):
    """Top-level host configuration model."""

    model_config = ConfigDict(extra="allow")

    app: AppConfig = Field(default_factory=AppConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)


class ConfigManager:
    """Load and validate host configuration from TOML files."""

    def __init__(self, defaults: HostConfig | None = None) -> None:
        self._defaults = defaults or HostConfig()

    @property
    def defaults(self) -> HostConfig:
        """Return default configuration."""
        return self._defaults

    def load(self, path: str | Path) -> HostConfig:
        """Load TOML file and merge with defaults before validation.

        Raises:
            ConfigParseError: If the file is not valid TOML.
            ConfigError: If the merged settings fail validation.
        """
        config_path = Path(path)
        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise wrap_exception(
                exc,
                ConfigParseError,
                "Host configuration is not valid TOML",
                context={"path": str(config_path)},
            ) from exc

        return self.from_dict(data)

    def from_dict(self, data: dict[str, Any]) -> HostConfig:
        """Validate configuration from dict, merged onto defaults and env vars."""
        merged = _deep_merge(
            self._defaults.model_dump(mode="python"),
            data,
        )
        merged_with_env = _apply_env_overrides(merged)
        try:
            return HostConfig.model_validate(merged_with_env)
        except ValidationError as exc:
            raise wrap_exception(
                exc,
                ConfigError,
                "Invalid host configuration",
                context={"errors": exc.error_count()},
            ) from exc


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply env overrides using MODHOST__A__B style keys."""
    overridden = deepcopy(config)

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        keys = [part.lower() for part in key[len(ENV_PREFIX) :].split("__") if part]
        if not keys:
            continue

        _set_nested(overridden, keys, _parse_env_value(raw_value))

    return overridden


def _set_nested(root: dict[str, Any], keys: list[str], value: Any) -> None:
    current: dict[str, Any] = root
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def _parse_env_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw
