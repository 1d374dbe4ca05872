"""
CLI commands for inspecting pages.

Static analysis only: nothing is rendered or bundled.
"""

from __future__ import annotations

import json

import click

from islandgen.ui.cli._project import fail, resolve_project


@click.group()
def pages() -> None:
    """Pages: inspect discovered pages and their islands."""


@pages.command("list")
@click.argument("inputs", nargs=-1, type=click.Path())
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_pages(ctx: click.Context, inputs: tuple[str, ...], as_json: bool) -> None:
    """List pages with their routes and islands."""
    from islandgen.core.config import ConfigError, resolve_config
    from islandgen.core.services.errors import DiscoveryError
    from islandgen.core.services.island_scanner import scan_islands
    from islandgen.core.services.page_discovery import discover_pages

    try:
        root, options = resolve_project(ctx)
        config = resolve_config(options.build, root)
    except ConfigError as e:
        fail(str(e))

    page_inputs = list(inputs) or options.pages
    if not page_inputs:
        fail("No page inputs: pass INPUTS or set 'pages' in islandgen.yml")

    rows = []
    for page_input in page_inputs:
        try:
            found = discover_pages(page_input, root=root)
        except DiscoveryError as e:
            fail(str(e))
        for page in found:
            islands, dropped = scan_islands(page.component_path, config.src_path)
            rows.append({
                "slug": page.slug,
                "route_url": page.route_url,
                "component_path": str(page.component_path),
                "has_head": page.has_head,
                "has_context": page.has_context,
                "islands": [i.import_path for i in islands],
                "dropped_islands": [str(d) for d in dropped],
            })

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    click.secho(f"📄 Pages ({len(rows)}):", fg="cyan", bold=True)
    for row in rows:
        flags = [name for name, on in (("head", row["has_head"]), ("context", row["has_context"])) if on]
        flag_label = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"   • {row['slug']}{flag_label}  {row['route_url']}")
        for island in row["islands"]:
            click.echo(f"       ◆ {island}")
        for dropped in row["dropped_islands"]:
            click.secho(f"       ⚠️  {dropped}", fg="yellow")
    click.echo()
