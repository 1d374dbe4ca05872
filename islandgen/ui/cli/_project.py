"""Shared CLI helpers: project lookup and error reporting."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click

from islandgen.core.config import find_project_file, load_project_file, project_root
from islandgen.core.models.config import PluginOptions


def resolve_project(ctx: click.Context) -> tuple[Path, PluginOptions]:
    """Project root and options from --config, islandgen.yml, or defaults.

    Raises:
        ConfigError: The project file exists but is invalid.
    """
    config_path: Path | None = ctx.obj.get("config_path")
    if config_path is None:
        config_path = find_project_file()
    if config_path is None:
        return Path.cwd().resolve(), PluginOptions(pages=[])
    return project_root(config_path), load_project_file(config_path)


def fail(message: str) -> NoReturn:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(1)
