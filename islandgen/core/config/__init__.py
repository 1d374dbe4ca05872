"""Configuration: project file loading and build config resolution."""

from __future__ import annotations

from .loader import ConfigError, find_project_file, load_project_file, project_root
from .resolver import DEFAULT_CONFIG, deep_merge, resolve_config

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG",
    "deep_merge",
    "find_project_file",
    "load_project_file",
    "project_root",
    "resolve_config",
]
