"""
Configuration loader: reads islandgen.yml into plugin options.

The project file names the page inputs to build, the user build config
(merged over defaults later by ``resolve_config``) and hosting settings:

    pages: src/pages/
    build:
      out_dir: dist/static
      images:
        quality: 90
    hosting:
      firebase_json: firebase.json
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from islandgen.core.models.config import PluginOptions

logger = logging.getLogger(__name__)

# Default config filename
PROJECT_CONFIG_FILE = "islandgen.yml"


class ConfigError(Exception):
    """Raised when project configuration is invalid or missing."""


def find_project_file(start_dir: Path | None = None) -> Path | None:
    """Search for islandgen.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to islandgen.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_project_file(path: Path) -> PluginOptions:
    """Load and validate an islandgen.yml file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading project config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    data.setdefault("pages", [])

    try:
        options = PluginOptions.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid project configuration in {path}: {e}") from e

    logger.info("Loaded %s with %d page input(s)", path.name, len(options.pages))
    return options


def project_root(config_path: Path) -> Path:
    """Get the project root directory from a config file path."""
    return config_path.parent.resolve()
