"""
CLI command for static generation.

Thin wrapper over ``islandgen.core.services.plugin``.
"""

from __future__ import annotations

import json
import sys

import click

from islandgen.ui.cli._project import fail, resolve_project


@click.command()
@click.argument("inputs", nargs=-1, type=click.Path())
@click.option("--out-dir", "-o", default=None, help="Output directory (default: dist/static).")
@click.option("--base-url", default=None, help="Public URL path of the output directory.")
@click.option("--no-images", is_flag=True, help="Skip image optimization.")
@click.option("--firebase-json", type=click.Path(), default=None, help="firebase.json to update.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def build(
    ctx: click.Context,
    inputs: tuple[str, ...],
    out_dir: str | None,
    base_url: str | None,
    no_images: bool,
    firebase_json: str | None,
    as_json: bool,
) -> None:
    """Generate static pages from page modules or directories.

    INPUTS default to the 'pages' entries of islandgen.yml.
    """
    from islandgen.core.config import ConfigError, deep_merge
    from islandgen.core.services.errors import GenerationError, StaticGenError
    from islandgen.core.services.plugin import SsgPlugin

    try:
        root, options = resolve_project(ctx)
    except ConfigError as e:
        fail(str(e))

    overrides: dict = {"out_dir": out_dir, "base_url": base_url}
    if no_images:
        overrides["images"] = {"enabled": False}
    updates: dict = {"build": deep_merge(options.build, overrides)}
    if inputs:
        updates["pages"] = list(inputs)
    if firebase_json:
        updates["hosting"] = options.hosting.model_copy(update={"firebase_json": firebase_json})
    options = options.model_copy(update=updates)

    if not options.pages:
        fail("No page inputs: pass INPUTS or set 'pages' in islandgen.yml")

    plugin = SsgPlugin(options, root)
    plugin.config_resolved("build")

    try:
        pages = plugin.write_bundle()
    except GenerationError as e:
        if as_json:
            click.echo(json.dumps([r.to_dict() for r in e.results], indent=2))
            sys.exit(1)
        fail(str(e))
    except (StaticGenError, ConfigError) as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in plugin.results], indent=2))
        return

    quiet = ctx.obj.get("quiet", False)
    click.secho(f"✅ Generated {len(pages)} page(s)", fg="green", bold=True)
    if quiet:
        return
    for result in plugin.results:
        click.echo(f"   • {result.route_url} → {plugin.config.out_dir}/{result.slug}.html")
        for w in result.warnings:
            click.secho(f"     ⚠️  {w}", fg="yellow")
