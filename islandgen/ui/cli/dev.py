"""
CLI commands for local development.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import click

from islandgen.ui.cli._project import fail, resolve_project

RUNTIME_FILE = Path(__file__).resolve().parents[2] / "runtime" / "Island.tsx"


@click.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=5173, type=int, help="Port.")
@click.pass_context
def dev(ctx: click.Context, host: str, port: int) -> None:
    """Serve the app build with static page rewrites."""
    from islandgen.core.config import ConfigError
    from islandgen.core.services.errors import StaticGenError
    from islandgen.core.services.plugin import SsgPlugin
    from islandgen.ui.web.server import create_app, run_server

    try:
        root, options = resolve_project(ctx)
        plugin = SsgPlugin(options, root)
        app = create_app(root, options, plugin=plugin, watch=True)
        if options.run_in_dev:
            plugin.write_bundle()
    except (StaticGenError, ConfigError) as e:
        fail(str(e))

    click.secho(f"🌐 Dev server on http://{host}:{port}", fg="cyan", bold=True)
    run_server(app, host=host, port=port, debug=ctx.obj.get("debug", False))


@click.command("init-runtime")
@click.option("--force", is_flag=True, help="Overwrite an existing runtime file.")
@click.pass_context
def init_runtime(ctx: click.Context, force: bool) -> None:
    """Install the Island runtime component into the source tree."""
    from islandgen.core.config import ConfigError, resolve_config

    try:
        root, options = resolve_project(ctx)
        config = resolve_config(options.build, root)
    except ConfigError as e:
        fail(str(e))

    target = config.src_path / f"{config.ssr.island_module}.tsx"
    if target.exists() and not force:
        fail(f"{target} already exists (use --force to overwrite)")

    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(RUNTIME_FILE, target)
    click.secho(f"✅ Island runtime written to {target}", fg="green")
