"""Configuration models and loaders for canary.

This module defines the tracer configuration schema and how values are loaded
from YAML plus environment variable overrides.

The four tracer keys are lenient: a missing or malformed value falls back to
its default and a warning is logged, so a typo in a trace config never stops
the host application.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, get_args

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

DEFAULT_CONFIG_PATH = "canary.yaml"
DEFAULT_LOG_LEVEL = "trace"
DEFAULT_MAXIMUM_REPRESENTATION_CHARACTERS = 200

LogLevelName = Literal["all", "trace", "debug", "info", "warn", "error", "fatal", "off"]
LOG_LEVEL_NAMES: tuple[str, ...] = get_args(LogLevelName)

# Tracer keys and the default each one falls back to when the file omits it.
TRACER_KEY_DEFAULTS: dict[str, Any] = {
    "log_level": DEFAULT_LOG_LEVEL,
    "write_to_application_logs": True,
    "write_to_standard_output": True,
    "maximum_representation_characters": DEFAULT_MAXIMUM_REPRESENTATION_CHARACTERS,
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

LOG = logging.getLogger(__name__)


class LoggingConfig(BaseModel):
    """Logging-related configuration."""

    model_config = ConfigDict(populate_by_name=True)

    level: str = "INFO"
    json_logs: bool = Field(default=False, alias="json")


def _parse_switch(name: str, value: Any) -> bool:
    """Parse a boolean switch, defaulting to True on anything unrecognized."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower() if value is not None else ""
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    LOG.warning("%s must be one of [true, false] - defaulted to true (got %r)", name, value)
    return True


class CanaryConfig(BaseModel):
    """Top-level tracer configuration."""

    model_config = ConfigDict(extra="forbid")

    log_level: LogLevelName = DEFAULT_LOG_LEVEL
    write_to_application_logs: bool = True
    write_to_standard_output: bool = True
    maximum_representation_characters: int = DEFAULT_MAXIMUM_REPRESENTATION_CHARACTERS
    logging: LoggingConfig | None = None

    @classmethod
    def silent(cls) -> "CanaryConfig":
        """Return a configuration that never writes anywhere."""
        return cls(log_level="off", write_to_application_logs=False, write_to_standard_output=False)

    @field_validator("log_level", mode="before")
    @classmethod
    def _lenient_log_level(cls, value: Any) -> Any:
        """Fall back to trace for unknown level names."""
        text = str(value).strip().lower() if value is not None else ""
        if text in LOG_LEVEL_NAMES:
            return text
        LOG.warning(
            "log_level must be one of [%s] - defaulted to %s (got %r)",
            ", ".join(LOG_LEVEL_NAMES),
            DEFAULT_LOG_LEVEL,
            value,
        )
        return DEFAULT_LOG_LEVEL

    @field_validator("write_to_application_logs", "write_to_standard_output", mode="before")
    @classmethod
    def _lenient_switch(cls, value: Any, info: ValidationInfo) -> bool:
        """Accept YAML booleans and common textual switches."""
        return _parse_switch(info.field_name, value)

    @field_validator("maximum_representation_characters", mode="before")
    @classmethod
    def _lenient_maximum(cls, value: Any) -> int:
        """Accept non-negative integers (or their text), else use the default."""
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        if isinstance(value, str):
            try:
                parsed = int(value.strip())
            except ValueError:
                parsed = -1
            if parsed >= 0:
                return parsed
        LOG.warning(
            "maximum_representation_characters must be a non-negative integer such as 0, 100 or 1000"
            " - defaulted to %d (got %r)",
            DEFAULT_MAXIMUM_REPRESENTATION_CHARACTERS,
            value,
        )
        return DEFAULT_MAXIMUM_REPRESENTATION_CHARACTERS

    @model_validator(mode="after")
    def _fill_defaults(self) -> "CanaryConfig":
        """Materialize nested defaults."""
        if self.logging is None:
            self.logging = LoggingConfig()
        return self


def _load_yaml(path: str | None) -> dict[str, Any] | None:
    """Load a YAML file into a dictionary.

    Returns None when the file does not exist so callers can tell an empty
    file from a missing one.
    """
    if not path:
        return None
    cfg_path = Path(path)
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be object: {path}")
    return data


def _override_from_env(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides on top of file configuration."""
    env_map = {
        "log_level": "CANARY_LOG_LEVEL",
        "write_to_application_logs": "CANARY_WRITE_TO_APPLICATION_LOGS",
        "write_to_standard_output": "CANARY_WRITE_TO_STANDARD_OUTPUT",
        "maximum_representation_characters": "CANARY_MAXIMUM_REPRESENTATION_CHARACTERS",
        "logging.level": "CANARY_LOGGING_LEVEL",
        "logging.json_logs": "CANARY_LOGGING_JSON",
    }

    out = dict(data)
    out["logging"] = dict(out.get("logging") or {})

    for key, env_name in env_map.items():
        value = os.getenv(env_name)
        if value is None:
            continue

        if key == "logging.json_logs":
            out["logging"]["json"] = value.lower() in _TRUE_VALUES
        elif key == "logging.level":
            out["logging"]["level"] = value
        else:
            # Raw text; the model validators parse and default it.
            out[key] = value

    return out


def _warn_missing_keys(data: dict[str, Any], path: str) -> None:
    """Log the fallback for every tracer key the config file leaves unset."""
    for key, default in TRACER_KEY_DEFAULTS.items():
        if key not in data:
            LOG.warning("%s is not set in %s - defaulted to %s", key, path, default)


def load_config(path: str | None = None) -> CanaryConfig:
    """Load, merge, and validate tracer configuration.

    Without a config file the tracer starts silent; environment overrides
    still apply on top of that.
    """
    final_path = path or os.getenv("CANARY_CONFIG") or DEFAULT_CONFIG_PATH
    raw = _load_yaml(final_path)
    if raw is None:
        LOG.debug("No canary config at %s, starting silent", final_path)
        raw = _override_from_env(CanaryConfig.silent().model_dump(exclude={"logging"}))
    else:
        raw = _override_from_env(raw)
        _warn_missing_keys(raw, final_path)
    return CanaryConfig.model_validate(raw)
