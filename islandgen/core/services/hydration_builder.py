"""
Hydration builder: per-page browser bundle that revives the islands.

The entry is generated from ``templates/hydrate-entry.tsx``: it imports
exactly the page's validated islands, registers them by island name and
hydrates every ``[data-island]`` element with its serialized props. A
page without islands gets no bundle at all.
"""

from __future__ import annotations

import logging
import shutil

from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.models.pages import IslandDescriptor, Skipped
from islandgen.core.services.errors import BundleError
from islandgen.core.services.node_tools import (
    CommandRunner,
    copy_assets,
    esbuild_command,
    import_specifier,
    require_success,
    run_command,
    scratch_dir,
    scratch_file,
    terser_command,
)
from islandgen.core.services.template_engine import js_string, render_template

logger = logging.getLogger(__name__)


def resolve_registry(
    islands: list[IslandDescriptor],
) -> tuple[dict[str, IslandDescriptor], list[Skipped]]:
    """Map island names to islands. On a name collision the later one wins."""
    registry: dict[str, IslandDescriptor] = {}
    collisions: list[Skipped] = []
    for island in islands:
        previous = registry.get(island.name)
        if previous is not None:
            collisions.append(Skipped(
                previous.import_path,
                f"island name '{island.name}' also used by {island.import_path}, "
                f"which replaces it in the hydration registry",
            ))
        registry[island.name] = island
    return registry, collisions


def generate_hydration_entry(
    islands: list[IslandDescriptor],
    config: ResolvedBuildConfig,
) -> str:
    registry, _ = resolve_registry(islands)

    imports = []
    entries = []
    for index, (name, island) in enumerate(registry.items()):
        ident = f"Island{index}"
        imports.append(f"import {ident} from {js_string(import_specifier(island.file_path))};")
        entries.append(f"  {js_string(name)}: {ident},")

    return render_template(
        "hydrate-entry.tsx",
        features={"router": config.js.router},
        ISLAND_IMPORTS="\n".join(imports),
        ISLAND_REGISTRY="\n".join(entries),
    )


def build_hydration_bundle(
    slug: str,
    islands: list[IslandDescriptor],
    config: ResolvedBuildConfig,
    run: CommandRunner = run_command,
) -> str | None:
    """Build ``{out_dir}/{slug}-hydrate.js``.

    Returns:
        The script's public URL, or None when there are no islands.

    Raises:
        BundleError: The bundler or the minifier failed.
    """
    name = f"{slug}-hydrate"
    out_dir = config.out_path
    out_file = out_dir / f"{name}.js"

    if not islands:
        out_file.unlink(missing_ok=True)
        return None

    scratch = config.scratch_path
    source = generate_hydration_entry(islands, config)

    with (
        scratch_dir(scratch, f"hydrate-{slug}") as build_dir,
        scratch_file(scratch, f"_entry_{slug}_hydrate.tsx", source) as entry,
    ):
        cmd = esbuild_command(
            config, entry, build_dir, name,
            minify=config.js.minify == "esbuild",
        )
        require_success(run(cmd, config.root_path), f"[{slug}] hydration build")

        built = build_dir / f"{name}.js"
        if not built.is_file():
            raise BundleError(f"[{slug}] hydration build emitted no {built.name}")

        out_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(built, out_file)
        copy_assets(build_dir, out_dir)

    if config.js.minify == "terser":
        require_success(
            run(terser_command(config, out_file), config.root_path),
            f"[{slug}] terser minify",
        )

    logger.info("[%s] Hydration bundle created (%d island(s))", slug, len(islands))
    return f"{config.base_url}/{name}.js"
