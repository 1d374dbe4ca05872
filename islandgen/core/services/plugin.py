"""
Build plugin hook: runs static generation once per build.

Lifecycle (driven by ``islandgen build`` or any host build tool):

    plugin = SsgPlugin(options, root)
    plugin.config_resolved("build")   # or "serve"
    ...host writes its own bundle...
    plugin.write_bundle()             # generates pages, then syncs hosting
    plugin.configure_server(app)      # dev only: installs the middleware

Generation only runs for ``build`` unless ``run_in_dev`` is set, and at
most once per plugin instance.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from islandgen.core.config import resolve_config
from islandgen.core.models.config import PluginOptions, ResolvedBuildConfig
from islandgen.core.models.pages import GeneratedPageInfo, PageResult
from islandgen.core.observability.logging_config import apply_build_level
from islandgen.core.services.errors import GenerationError, HostingError
from islandgen.core.services.generator import BuildTools, generate_pages
from islandgen.core.services.hosting import get_configurator
from islandgen.core.services.page_discovery import discover_pages

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)


class SsgPlugin:
    """Static generation as a step of a larger build."""

    name = "islandgen"

    def __init__(
        self,
        options: PluginOptions,
        root: Path,
        tools: BuildTools | None = None,
    ) -> None:
        self.options = options
        self.root = root.resolve()
        self.tools = tools or BuildTools()
        self.command = "build"
        self.results: list[PageResult] = []
        self._config: ResolvedBuildConfig | None = None
        self._has_run = False

    @property
    def config(self) -> ResolvedBuildConfig:
        if self._config is None:
            self._config = resolve_config(self.options.build, self.root)
            apply_build_level(self._config.log_level)
        return self._config

    def config_resolved(self, command: str) -> None:
        """Record the host command ("build" or "serve")."""
        self.command = command
        logger.debug("Plugin configured for '%s'", command)

    @property
    def should_run(self) -> bool:
        return self.command == "build" or self.options.run_in_dev

    def write_bundle(self) -> list[GeneratedPageInfo]:
        """Generate every configured page input, then sync hosting.

        Returns an empty list when generation does not apply to this
        command or has already run.

        Raises:
            DiscoveryError: A page input yields nothing to generate.
            GenerationError: One or more pages failed (hosting untouched).
            HostingError: The hosting manifest could not be updated.
        """
        if not self.should_run or self._has_run:
            return []
        self._has_run = True

        if not self.options.pages:
            logger.warning("No page inputs configured, skipping static generation")
            return []

        logger.info("Starting static site generation...")
        written: set[Path] = set()
        results: list[PageResult] = []
        for page_input in self.options.pages:
            logger.info("Processing: %s", page_input)
            results.extend(generate_pages(page_input, self.config, self.tools, written))
        self.results = results

        if not all(r.ok for r in results):
            raise GenerationError(results)

        pages = [r.to_info() for r in results]
        self.sync_hosting(pages)

        logger.info("Static site generation complete: %d page(s)", len(pages))
        return pages

    def sync_hosting(self, pages: list[GeneratedPageInfo]) -> None:
        configurator = get_configurator(self.options.hosting, self.root)
        if configurator is None or not pages:
            return
        logger.info("Configuring %s hosting...", configurator.name)
        configurator.configure(pages, self.config.base_url)

    def sync_existing(self) -> list[GeneratedPageInfo]:
        """Sync hosting from pages already on disk, without building.

        Pages are found by static analysis; those whose HTML has not been
        generated yet are left out with a warning.

        Raises:
            DiscoveryError: A page input yields no pages.
            HostingError: No hosting platform configured, or the manifest
                could not be updated.
        """
        if get_configurator(self.options.hosting, self.root) is None:
            raise HostingError("No hosting platform configured (set hosting.firebase_json)")

        pages: list[GeneratedPageInfo] = []
        for page_input in self.options.pages:
            for page in discover_pages(page_input, root=self.root):
                info = GeneratedPageInfo(
                    slug=page.slug,
                    route_url=page.route_url,
                    html_path=f"{page.slug}.html",
                )
                if (self.config.out_path / info.html_path).is_file():
                    pages.append(info)
                else:
                    logger.warning(
                        "[%s] Not generated yet (%s/%s), no rewrite added",
                        page.slug, self.config.out_dir, info.html_path,
                    )

        self.sync_hosting(pages)
        return pages

    def configure_server(self, app: Flask, watch: bool = False) -> None:
        """Install the dev middleware in front of a Flask app.

        With ``watch``, a background thread invalidates the route cache
        when page sources change.
        """
        if not self.options.dev_middleware:
            return
        from islandgen.ui.web.dev_middleware import StaticPageMiddleware

        middleware = StaticPageMiddleware(
            app.wsgi_app, self.options, self.config, self.root,
        )
        app.wsgi_app = middleware  # type: ignore[method-assign]
        if watch:
            middleware.start_watcher()
        logger.info(
            "Dev middleware installed: %s/ -> %s/",
            self.config.base_url, self.config.out_dir,
        )
