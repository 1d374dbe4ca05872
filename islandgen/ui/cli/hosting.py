"""
CLI commands for hosting configuration.
"""

from __future__ import annotations

import click

from islandgen.ui.cli._project import fail, resolve_project


@click.group()
def hosting() -> None:
    """Hosting: keep the hosting manifest in sync with generated pages."""


@hosting.command("sync")
@click.option("--firebase-json", type=click.Path(), default=None, help="firebase.json to update.")
@click.pass_context
def sync(ctx: click.Context, firebase_json: str | None) -> None:
    """Rewrite hosting rules for pages already generated."""
    from islandgen.core.config import ConfigError
    from islandgen.core.services.errors import StaticGenError
    from islandgen.core.services.plugin import SsgPlugin

    try:
        root, options = resolve_project(ctx)
    except ConfigError as e:
        fail(str(e))

    if firebase_json:
        options = options.model_copy(update={
            "hosting": options.hosting.model_copy(update={"firebase_json": firebase_json}),
        })

    try:
        synced = SsgPlugin(options, root).sync_existing()
    except (StaticGenError, ConfigError) as e:
        fail(str(e))

    click.secho(f"✅ Synced {len(synced)} rewrite(s)", fg="green", bold=True)
    for page in synced:
        click.echo(f"   • {page.route_url} → {page.html_path}")
