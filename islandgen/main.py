"""
islandgen: CLI entrypoint.

Usage:
    islandgen --help
    islandgen build src/pages/
    islandgen pages list
    islandgen hosting sync
    islandgen dev
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from islandgen import __version__
from islandgen.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    ENV_LEVEL,
    setup_logging,
)


def _configured_log_level(config_path: Path | None) -> str:
    """``build.log_level`` from the project file, else the default."""
    from islandgen.core.config import DEFAULT_CONFIG, ConfigError, find_project_file, load_project_file

    path = config_path or find_project_file()
    level = DEFAULT_CONFIG["log_level"]
    if path is None:
        return level
    try:
        options = load_project_file(path)
    except ConfigError:
        return level  # reported by the command itself
    return options.build.get("log_level") or level


@click.group()
@click.version_option(version=__version__, prog_name="islandgen")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to islandgen.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """islandgen: static pages with island hydration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get(ENV_LEVEL) or _configured_log_level(ctx.obj["config_path"])

    setup_logging(
        level=level,
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
        pinned=True,
    )


from islandgen.ui.cli.build import build  # noqa: E402
from islandgen.ui.cli.dev import dev, init_runtime  # noqa: E402
from islandgen.ui.cli.hosting import hosting  # noqa: E402
from islandgen.ui.cli.pages import pages  # noqa: E402

cli.add_command(build)
cli.add_command(pages)
cli.add_command(hosting)
cli.add_command(dev)
cli.add_command(init_runtime)


if __name__ == "__main__":
    cli()
