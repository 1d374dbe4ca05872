"""
Static generator: runs the page pipeline for every discovered page.

Pipeline model
──────────────
Pages are processed one at a time (they share the scratch and output
directories). Each page runs these stages in order:

    islands   Island Scan        local import graph → validated islands
    render    SSR Render         body + head markup via tsx
    images    Image Optimize     localize remote images (Pillow)
    css       CSS Build          {slug}.css
    hydrate   Hydration Build    {slug}-hydrate.js (only with islands)
    html      HTML Generate      {slug}.html

A stage either finishes (``done``), has nothing to do (``skipped``) or
fails (``error``). A failure aborts that page only: its remaining stages
are marked ``skipped`` and the next page starts. Once every page has run,
failures are raised together as one ``GenerationError``.

Usage:
    pages = generate_static_with_info("src/pages", {"out_dir": "public/static"})
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from islandgen.core.config import resolve_config
from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.models.pages import (
    GeneratedPageInfo,
    IslandDescriptor,
    PageDescriptor,
    PageResult,
    Skipped,
    StageInfo,
    StageResult,
)
from islandgen.core.observability.logging_config import apply_build_level
from islandgen.core.services.css_builder import build_css_bundle
from islandgen.core.services.errors import GenerationError, StaticGenError
from islandgen.core.services.html_template import generate_html_document
from islandgen.core.services.hydration_builder import build_hydration_bundle, resolve_registry
from islandgen.core.services.image_optimizer import (
    ImageFetcher,
    download_image,
    generate_image_preloads,
    optimize_images,
)
from islandgen.core.services.island_scanner import scan_islands
from islandgen.core.services.node_tools import CommandRunner, run_command
from islandgen.core.services.page_discovery import discover_pages, warn_duplicate_slugs
from islandgen.core.services.ssr_renderer import render_page

logger = logging.getLogger(__name__)


PAGE_STAGES = [
    StageInfo("islands", "Island Scan"),
    StageInfo("render", "SSR Render"),
    StageInfo("images", "Image Optimize"),
    StageInfo("css", "CSS Build"),
    StageInfo("hydrate", "Hydration Build"),
    StageInfo("html", "HTML Generate"),
]


@dataclass
class BuildTools:
    """External capabilities used by the pipeline."""

    run: CommandRunner = run_command
    fetch: ImageFetcher = download_image


@dataclass
class _PageState:
    """Values passed between the stages of one page."""

    page: PageDescriptor
    config: ResolvedBuildConfig
    tools: BuildTools
    written: set[Path]
    islands: list[IslandDescriptor] = field(default_factory=list)
    body_html: str = ""
    head_html: str = ""
    image_preloads: str = ""
    css_path: str | None = None
    hydrate_path: str | None = None
    html_path: Path | None = None
    warnings: list[Skipped] = field(default_factory=list)


# ── Stages ──────────────────────────────────────────────────────────
#
# Each stage returns a detail dict, or None when it had nothing to do.


def _stage_islands(s: _PageState) -> dict | None:
    islands, skipped = scan_islands(s.page.component_path, s.config.src_path)
    s.islands = islands
    s.warnings.extend(skipped)
    if islands:
        logger.info(
            "[%s] Found %d island(s): %s",
            s.page.slug, len(islands), ", ".join(i.name for i in islands),
        )
    else:
        logger.info("[%s] No islands found", s.page.slug)
    return {"islands": [i.import_path for i in islands], "dropped": len(skipped)}


def _stage_render(s: _PageState) -> dict | None:
    rendered = render_page(s.page, s.islands, s.config, s.tools.run)
    s.body_html = rendered.body_html
    s.head_html = rendered.head_html
    s.warnings.extend(rendered.warnings)
    return {"body_bytes": len(rendered.body_html), "head_bytes": len(rendered.head_html)}


def _stage_images(s: _PageState) -> dict | None:
    if not s.config.images.enabled:
        return None
    result = optimize_images(s.body_html, s.config, s.tools.fetch, s.written)
    s.body_html = result.html
    s.warnings.extend(result.skipped)
    s.image_preloads = generate_image_preloads(result.images, s.config.images.lcp_image_count)
    return {
        "optimized": len(result.images),
        "skipped": len(result.skipped),
        "original_bytes": result.original_bytes,
        "optimized_bytes": result.optimized_bytes,
    }


def _stage_css(s: _PageState) -> dict | None:
    s.css_path = build_css_bundle(s.page, s.config, s.tools.run)
    return {"css_path": s.css_path}


def _stage_hydrate(s: _PageState) -> dict | None:
    if not s.islands:
        build_hydration_bundle(s.page.slug, s.islands, s.config, s.tools.run)
        return None
    _, collisions = resolve_registry(s.islands)
    for c in collisions:
        logger.warning("[%s] %s", s.page.slug, c)
    s.warnings.extend(collisions)
    s.hydrate_path = build_hydration_bundle(s.page.slug, s.islands, s.config, s.tools.run)
    return {"hydrate_path": s.hydrate_path}


def _stage_html(s: _PageState) -> dict | None:
    document = generate_html_document(
        s.head_html,
        s.body_html,
        s.config,
        route_url=s.page.route_url,
        css_path=s.css_path,
        hydrate_js_path=s.hydrate_path,
        image_preload_tags=s.image_preloads,
    )
    out_dir = s.config.out_path
    out_dir.mkdir(parents=True, exist_ok=True)
    s.html_path = out_dir / f"{s.page.slug}.html"
    s.html_path.write_text(document, encoding="utf-8")
    return {"html_path": str(s.html_path), "bytes": len(document)}


_STAGE_FUNCS: dict[str, Callable[[_PageState], dict | None]] = {
    "islands": _stage_islands,
    "render": _stage_render,
    "images": _stage_images,
    "css": _stage_css,
    "hydrate": _stage_hydrate,
    "html": _stage_html,
}


# ── Page pipeline ───────────────────────────────────────────────────


def generate_static_page(
    page: PageDescriptor,
    config: ResolvedBuildConfig,
    tools: BuildTools | None = None,
    written: set[Path] | None = None,
) -> PageResult:
    """Run the full pipeline for one page. Never raises for stage failures."""
    state = _PageState(
        page=page,
        config=config,
        tools=tools or BuildTools(),
        written=written if written is not None else set(),
    )
    result = PageResult(
        slug=page.slug,
        route_url=page.route_url,
        component_path=str(page.component_path),
    )

    total_start = time.monotonic()
    failed = False

    for si in PAGE_STAGES:
        sr = StageResult(name=si.name, label=si.label)
        result.stages.append(sr)

        if failed:
            sr.status = "skipped"
            continue

        stage_start = time.monotonic()
        try:
            detail = _STAGE_FUNCS[si.name](state)
        except (StaticGenError, OSError) as e:
            sr.status = "error"
            sr.error = str(e)
            failed = True
            logger.error("[%s] %s failed: %s", page.slug, si.label, e)
        else:
            sr.status = "done" if detail is not None else "skipped"
            sr.detail = detail or {}
        sr.duration_ms = int((time.monotonic() - stage_start) * 1000)

    result.total_duration_ms = int((time.monotonic() - total_start) * 1000)
    result.warnings = state.warnings
    result.ok = not failed
    if state.html_path is not None:
        result.html_path = str(state.html_path)

    if result.ok:
        logger.info(
            "[%s] Static page generated: %s (%dms)",
            page.slug, f"{config.out_dir}/{page.slug}.html", result.total_duration_ms,
        )
    return result


# ── Runs ────────────────────────────────────────────────────────────


def generate_pages(
    input_path: str | Path,
    config: ResolvedBuildConfig,
    tools: BuildTools | None = None,
    written: set[Path] | None = None,
) -> list[PageResult]:
    """Discover pages under ``input_path`` and generate each in turn.

    Raises:
        DiscoveryError: Nothing to generate.
    """
    pages = discover_pages(input_path, root=config.root_path)
    warn_duplicate_slugs(pages)

    logger.info("Generating %d static page(s)...", len(pages))
    config.out_path.mkdir(parents=True, exist_ok=True)

    written = written if written is not None else set()
    return [generate_static_page(page, config, tools, written) for page in pages]


def generate_static_with_info(
    input_path: str | Path,
    user_config: Mapping[str, Any] | None = None,
    *,
    root: Path | None = None,
    tools: BuildTools | None = None,
) -> list[GeneratedPageInfo]:
    """Generate static pages and return what was generated.

    Raises:
        ConfigError: The build config is invalid.
        DiscoveryError: Nothing to generate.
        GenerationError: One or more pages failed.
    """
    config = resolve_config(user_config, root)
    apply_build_level(config.log_level)
    results = generate_pages(input_path, config, tools)
    if not all(r.ok for r in results):
        raise GenerationError(results)
    logger.info("Done: %d page(s) generated", len(results))
    return [r.to_info() for r in results]


def generate_static(
    input_path: str | Path,
    user_config: Mapping[str, Any] | None = None,
    *,
    root: Path | None = None,
    tools: BuildTools | None = None,
) -> None:
    """Generate static pages, discarding the page list."""
    generate_static_with_info(input_path, user_config, root=root, tools=tools)
