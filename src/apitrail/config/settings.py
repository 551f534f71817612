"""Configuration settings and loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apitrail.errors import ConfigValidationError, ErrorContext

DEFAULT_SUBPROJECT = "DefaultSubproject"
DEFAULT_TIME_WINDOW_MS = 120_000


class TrailConfig(BaseSettings):
    """Configuration for apitrail."""

    model_config = SettingsConfigDict(
        env_prefix="APITRAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite:///apitrail_history.db"
    project_name: str | None = None
    subproject_name: str = DEFAULT_SUBPROJECT

    # Comparison settings
    strategy: str = Field(default="session", description="Grouping strategy: session or time_window")
    time_window_ms: int = Field(
        default=DEFAULT_TIME_WINDOW_MS,
        description="Idle gap separating two runs when grouping flat records by time",
    )
    record_limit: int = Field(default=100, description="Records fetched for time-window grouping")
    session_limit: int = Field(default=2, description="Sessions fetched for session grouping")

    # Narrative settings
    narrative_enabled: bool = True
    openrouter_api_key: str | None = None
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_model: str = "openai/gpt-4o-mini"
    narrative_timeout: float = 30.0

    # Reporting settings
    report_dir: str = "reports"
    report_formats: list[str] = Field(default_factory=lambda: ["markdown"])

    @field_validator("strategy", mode="before")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        valid = {"session", "time_window"}
        normalized = str(v).strip().lower().replace("-", "_")
        if normalized not in valid:
            raise ConfigValidationError(
                message=f"Invalid strategy: {v}. Valid: {sorted(valid)}",
                field="strategy",
                value=v,
                context=ErrorContext(extra={"valid_strategies": sorted(valid)}),
            )
        return normalized

    @field_validator("time_window_ms", "record_limit", mode="before")
    @classmethod
    def validate_positive(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, (int, float)) and v <= 0:
            raise ConfigValidationError(
                message=f"{info.field_name} must be greater than zero",
                field=info.field_name,
                value=v,
                expected="> 0",
            )
        return v

    @field_validator("session_limit", mode="before")
    @classmethod
    def validate_session_limit(cls, v: Any) -> Any:
        if isinstance(v, int) and v < 2:
            raise ConfigValidationError(
                message="session_limit must be at least 2 to compare two runs",
                field="session_limit",
                value=v,
                expected=">= 2",
            )
        return v

    @field_validator("narrative_timeout", mode="before")
    @classmethod
    def validate_timeout(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and v <= 0:
            raise ConfigValidationError(
                message="narrative_timeout must be greater than zero",
                field="narrative_timeout",
                value=v,
                expected="> 0",
            )
        return v

    @field_validator("report_formats", mode="before")
    @classmethod
    def validate_report_formats(cls, v: list[str]) -> list[str]:
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",") if part.strip()]
        valid = {"markdown", "html", "text", "json"}
        invalid = set(v) - valid
        if invalid:
            raise ConfigValidationError(
                message=f"Invalid report formats: {invalid}. Valid: {valid}",
                field="report_formats",
                value=v,
                context=ErrorContext(extra={"valid_formats": sorted(valid)}),
            )
        return v

    @property
    def time_window_seconds(self) -> float:
        return self.time_window_ms / 1000.0


def load_config(config_path: str | Path | None = None) -> TrailConfig:
    """Load configuration from file and environment.

    Priority: env vars > config file > defaults
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}

    env_overrides = _get_env_overrides()
    config_data.update(env_overrides)

    return TrailConfig(**config_data)


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    env_mappings = {
        "APITRAIL_DATABASE_URL": "database_url",
        "APITRAIL_STRATEGY": "strategy",
        "APITRAIL_TIME_WINDOW_MS": ("time_window_ms", int),
        "APITRAIL_NARRATIVE_TIMEOUT": ("narrative_timeout", float),
        "APITRAIL_NARRATIVE_ENABLED": (
            "narrative_enabled",
            lambda x: x.lower() in ("true", "1", "yes"),
        ),
        "OPENROUTER_API_KEY": "openrouter_api_key",
        "PROJECT_NAME": "project_name",
        "SUBPROJECT_NAME": "subproject_name",
    }

    for env_key, config_key in env_mappings.items():
        value = os.environ.get(env_key)
        if value is not None and value.strip():
            if isinstance(config_key, tuple):
                key, converter = config_key
                overrides[key] = converter(value)
            else:
                overrides[config_key] = value

    return overrides


def resolve_project_name(
    config: TrailConfig | None = None,
    override: str | None = None,
    cwd: str | Path | None = None,
) -> str | None:
    """Resolve the active project name.

    The first non-blank candidate wins: the explicit override, the configured
    ``project_name``, the ``PROJECT_NAME`` environment variable, then the name
    of the working directory.

    Args:
        config: Loaded configuration, if any.
        override: Explicit name, typically from a CLI option.
        cwd: Directory whose name is the last resort. Defaults to ``Path.cwd()``.

    Returns:
        The project name, or None when every candidate is blank.
    """
    candidates = [
        override,
        config.project_name if config else None,
        os.environ.get("PROJECT_NAME"),
        Path(cwd).name if cwd is not None else Path.cwd().name,
    ]
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def resolve_subproject_name(
    config: TrailConfig | None = None,
    override: str | None = None,
) -> str:
    """Resolve the active subproject name, defaulting to ``DefaultSubproject``."""
    candidates = [
        override,
        os.environ.get("SUBPROJECT_NAME"),
        config.subproject_name if config else None,
    ]
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return DEFAULT_SUBPROJECT
