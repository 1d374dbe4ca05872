"""
HTML template generator: assembles the final static document.

Pure functions over ``templates/document.html``. Page head/body markup
and the configured extra tags are inserted verbatim; attribute values
are escaped. When a page has a hydration bundle, an inline loader is
emitted instead of the bundle itself: it injects the real script on the
first interaction, when an island nears the viewport, or on idle.
"""

from __future__ import annotations

import html

from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.services.template_engine import js_string, render_template


def hydration_loader(hydrate_js_path: str, route_url: str) -> str:
    return render_template(
        "hydration-loader.html",
        ROUTE_JSON=js_string(route_url),
        SCRIPT_JSON=js_string(hydrate_js_path),
    ).rstrip("\n")


def generate_html_document(
    head_html: str,
    body_html: str,
    config: ResolvedBuildConfig,
    *,
    route_url: str = "/",
    css_path: str | None = None,
    hydrate_js_path: str | None = None,
    image_preload_tags: str = "",
) -> str:
    """Build a complete HTML document for one page."""
    loader = hydration_loader(hydrate_js_path, route_url) if hydrate_js_path else ""
    return render_template(
        "document.html",
        features={
            "preloads": bool(image_preload_tags),
            "css": bool(css_path),
            "hydration": bool(hydrate_js_path),
        },
        LANG=html.escape(config.html.lang, quote=True),
        IMAGE_PRELOADS=image_preload_tags,
        CSS_PATH=html.escape(css_path or "", quote=True),
        HEAD_CONTENT=head_html,
        HEAD_TAGS=config.html.head_tags,
        BODY_CONTENT=body_html,
        HYDRATION_LOADER=loader,
        BODY_TAGS=config.html.body_tags,
    )


def not_generated_page(route_url: str, html_path: str) -> str:
    """Diagnostic page served in dev for a page that has not been built."""
    return render_template(
        "not-generated.html",
        ROUTE_URL=html.escape(route_url),
        HTML_PATH=html.escape(html_path),
    )
