"""
SSR renderer: renders one page to body/head markup through ``tsx``.

The Python side never evaluates page modules. It emits a server entry
from ``templates/server-entry.tsx``, writes a JSON render request beside
it, and runs ``{ssr.command} server-entry.tsx request.json``. The entry:

  1. imports every validated island (failures become events, not errors)
  2. imports the page module
  3. wraps the page in IslandContext + Suspense, then in the page's
     context wrapper when it declares one
  4. prerenders the tree, waiting for suspended work
  5. renders the Head component separately when requested

Loaded islands reach the tree through the IslandContext provider built
inside the entry for this one render, never through shared state.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.models.pages import (
    IslandDescriptor,
    PageDescriptor,
    RenderedPage,
    Skipped,
)
from islandgen.core.services.errors import RenderError
from islandgen.core.services.island_scanner import resolve_module
from islandgen.core.services.node_tools import (
    CommandRunner,
    import_specifier,
    require_success,
    run_command,
    scratch_dir,
)
from islandgen.core.services.template_engine import js_string, render_template

logger = logging.getLogger(__name__)

_EVENT_REASONS = {
    "island-load-failed": "island failed to load at render time",
    "no-context": "no context wrapper, rendered without providers",
    "no-head": "Head declared but not found, head left empty",
}


def island_runtime_path(config: ResolvedBuildConfig) -> Path:
    """Locate the Island runtime module under the source root.

    Raises:
        RenderError: If the runtime has not been installed.
    """
    module = config.src_path / config.ssr.island_module
    resolved = resolve_module(module)
    if resolved is None:
        raise RenderError(
            f"Island runtime not found at {module}.tsx. "
            f"Run 'islandgen init-runtime' to install it"
        )
    return resolved


def build_server_entry(config: ResolvedBuildConfig) -> str:
    runtime = island_runtime_path(config)
    return render_template(
        "server-entry.tsx",
        ISLAND_MODULE=js_string(import_specifier(runtime)),
    )


def _events_to_warnings(events: list[dict]) -> list[Skipped]:
    warnings = []
    for event in events:
        kind = event.get("kind", "")
        reason = _EVENT_REASONS.get(kind, kind)
        message = event.get("message", "")
        if kind == "island-load-failed" and message:
            reason = f"{reason}: {message}"
        warnings.append(Skipped(event.get("subject", ""), reason))
    return warnings


def render_page(
    page: PageDescriptor,
    islands: list[IslandDescriptor],
    config: ResolvedBuildConfig,
    run: CommandRunner = run_command,
) -> RenderedPage:
    """Render a page's body (and head, when declared) to markup.

    Raises:
        RenderError: The runtime is missing, the renderer failed, or it
            produced no usable result.
    """
    entry_source = build_server_entry(config)

    with scratch_dir(config.scratch_path, f"ssr-{page.slug}") as work:
        entry = work / "server-entry.tsx"
        entry.write_text(entry_source, encoding="utf-8")

        request_path = work / "request.json"
        result_path = work / "result.json"
        request = {
            "componentPath": str(page.component_path),
            "routeUrl": page.route_url,
            "islands": [i.to_payload() for i in islands],
            "renderHead": page.has_head,
            "outputPath": str(result_path),
        }
        request_path.write_text(json.dumps(request, indent=2), encoding="utf-8")

        logger.debug("[%s] Rendering %s", page.slug, page.component_path.name)
        result = run([*config.ssr.command, str(entry), str(request_path)], config.root_path)
        require_success(result, f"SSR render of {page.component_path.name}", RenderError)

        if not result_path.is_file():
            raise RenderError(f"SSR render of {page.component_path.name} produced no result")
        try:
            data = json.loads(result_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise RenderError(f"Unreadable SSR result for {page.component_path.name}: {e}") from e

    warnings = _events_to_warnings(data.get("events", []))
    for w in warnings:
        logger.warning("[%s] %s", page.slug, w)

    return RenderedPage(
        body_html=data.get("bodyHtml", ""),
        head_html=data.get("headHtml", ""),
        warnings=warnings,
    )
