"""Configuration loading and project name resolution."""

from apitrail.config.settings import (
    DEFAULT_SUBPROJECT,
    DEFAULT_TIME_WINDOW_MS,
    TrailConfig,
    load_config,
    resolve_project_name,
    resolve_subproject_name,
)

__all__ = [
    "DEFAULT_SUBPROJECT",
    "DEFAULT_TIME_WINDOW_MS",
    "TrailConfig",
    "load_config",
    "resolve_project_name",
    "resolve_subproject_name",
]
