"""
CSS builder: one stylesheet per page from a throwaway bundler run.

The synthetic entry imports the global stylesheet (when it exists) and
then the page module. esbuild bundles it into a private scratch dir; the
CSS and any emitted assets are copied to the output dir, the JS output is
discarded with the scratch dir.
"""

from __future__ import annotations

import logging
import shutil

from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.models.pages import PageDescriptor
from islandgen.core.services.node_tools import (
    CommandRunner,
    copy_assets,
    esbuild_command,
    import_specifier,
    lightningcss_command,
    require_success,
    run_command,
    scratch_dir,
    scratch_file,
)
from islandgen.core.services.template_engine import js_string

logger = logging.getLogger(__name__)


def css_entry_source(page: PageDescriptor, config: ResolvedBuildConfig) -> str:
    lines = []
    if config.global_css.is_file():
        lines.append(f"import {js_string(import_specifier(config.global_css))};")
    else:
        logger.debug("No global stylesheet at %s", config.global_css)
    lines.append(f"import {js_string(import_specifier(page.component_path))};")
    return "\n".join(lines) + "\n"


def build_css_bundle(
    page: PageDescriptor,
    config: ResolvedBuildConfig,
    run: CommandRunner = run_command,
) -> str | None:
    """Build ``{out_dir}/{slug}.css``.

    Returns:
        The stylesheet's public URL, or None if the page has no styles.

    Raises:
        BundleError: The bundler or the minifier failed.
    """
    slug = page.slug
    out_dir = config.out_path
    out_file = out_dir / f"{slug}.css"
    scratch = config.scratch_path

    with (
        scratch_dir(scratch, f"css-{slug}") as build_dir,
        scratch_file(scratch, f"_entry_{slug}_css.tsx", css_entry_source(page, config)) as entry,
    ):
        cmd = esbuild_command(
            config, entry, build_dir, slug,
            minify=config.css.minify == "esbuild",
        )
        require_success(run(cmd, config.root_path), f"[{slug}] CSS build")

        built = build_dir / f"{slug}.css"
        if not built.is_file() or not built.read_text(encoding="utf-8").strip():
            # Drop a stylesheet left over from an earlier build
            out_file.unlink(missing_ok=True)
            logger.info("[%s] No CSS emitted", slug)
            return None

        out_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(built, out_file)
        assets = copy_assets(build_dir, out_dir)
        if assets:
            logger.debug("[%s] Copied %d CSS asset(s)", slug, len(assets))

    if config.css.minify == "lightningcss":
        require_success(
            run(lightningcss_command(out_file), config.root_path),
            f"[{slug}] lightningcss minify",
        )

    logger.info("[%s] CSS bundle created (%d bytes)", slug, out_file.stat().st_size)
    return f"{config.base_url}/{slug}.css"
