"""Configuration management for cc-sidecar."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any
import logging
import re

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|us|ns|h|m|s))+")
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|us|ns|h|m|s)")
_UNIT_SECONDS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "ns": 1e-9,
}


class SettingsError(RuntimeError):
    """Raised when the sidecar configuration is invalid."""


def parse_duration(value: Any) -> float:
    """Convert a duration into seconds.

    Accepts numbers (seconds), ``timedelta`` objects and Go-style duration
    strings such as ``"10s"``, ``"1m30s"`` or ``"250ms"``.
    """

    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool):
        raise ValueError("Durations must be numbers or duration strings")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        if not _DURATION_RE.fullmatch(text):
            raise ValueError(f"Invalid duration {value!r}; expected e.g. '10s', '1m30s' or '250ms'")
        return sum(float(amount) * _UNIT_SECONDS[unit] for amount, unit in _DURATION_PART_RE.findall(text))
    raise ValueError("Durations must be numbers or duration strings")


class SidecarSettings(BaseSettings):
    """Runtime configuration sourced from a YAML file, environment variables and optional .env file.

    Environment variables take precedence over values read from the YAML file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    watch_dir: Path = Field(
        default=Path("~/.claude/projects"), validation_alias="CC_SIDECAR_WATCH_DIR"
    )
    idle_threshold: float = Field(default=10.0, validation_alias="CC_SIDECAR_IDLE_THRESHOLD")
    poll_interval: float = Field(default=15.0, validation_alias="CC_SIDECAR_POLL_INTERVAL")
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CC_SIDECAR_CHROMA_PATH"
    )
    log_level: str = Field(default="INFO", validation_alias="CC_SIDECAR_LOG_LEVEL")
    source: str = Field(default="cc-sidecar", validation_alias="CC_SIDECAR_SOURCE")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("idle_threshold", "poll_interval", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("idle_threshold", "poll_interval")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Durations must be strictly positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "CC_SIDECAR_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.warning("Could not read config file %s, using defaults: %s", path, exc)
        return {}
    except yaml.YAMLError as exc:
        logger.warning("Could not parse config file %s, using defaults: %s", path, exc)
        return {}

    if document is None:
        return {}
    if not isinstance(document, dict):
        logger.warning("Config file %s is not a mapping, using defaults", path)
        return {}
    return document


def load_settings(config_path: Path | str | None = None) -> SidecarSettings:
    """Build settings from an optional YAML file plus the environment."""

    overrides = _read_config_file(Path(config_path).expanduser()) if config_path else {}
    try:
        settings = SidecarSettings(**overrides)
    except ValidationError as exc:
        raise SettingsError(f"Invalid sidecar configuration: {exc}") from exc

    settings.watch_dir = settings.watch_dir.expanduser().resolve()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    return settings


__all__ = ["SettingsError", "SidecarSettings", "load_settings", "parse_duration"]
