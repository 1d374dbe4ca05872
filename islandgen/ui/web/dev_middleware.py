"""
Dev middleware: simulates hosting rewrites during local development.

WSGI middleware placed in front of the dev server app. For every request:

  1. ``/@…`` and ``/__…`` paths go straight to the app
  2. ``{base_url}/<file>`` is served from out_dir when the file exists
     (``X-Islandgen-Dev: asset``, never cached)
  3. other asset-looking paths go to the app
  4. a path matching a page route (exactly, or up to one trailing slash)
     serves ``{out_dir}/{slug}.html`` (``static``), or a diagnostic page
     naming the expected file (``not-generated``), never a 404
  5. everything else goes to the app

Routes are read from page sources with the same static analysis as
discovery. The list is built on first use and dropped when a page source
changes (mtime polling, see ``PageWatcher``).
"""

from __future__ import annotations

import logging
import mimetypes
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from werkzeug.security import safe_join
from werkzeug.wrappers import Request, Response

from islandgen.core.models.config import PluginOptions, ResolvedBuildConfig
from islandgen.core.services.html_template import not_generated_page
from islandgen.core.services.page_discovery import PAGE_EXTENSIONS, extract_page_options

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 1.0

DEV_HEADER = "X-Islandgen-Dev"

_ASSET_PATH_RE = re.compile(
    r"\.(js|mjs|ts|tsx|jsx|css|scss|png|jpe?g|gif|svg|webp|avif|ico|woff2?|ttf|eot|map)$"
)


@dataclass
class StaticRoute:
    route_url: str
    slug: str
    html_path: str                      # Relative to out_dir


def _resolve(path_str: str, root: Path) -> Path:
    path = Path(path_str)
    return path if path.is_absolute() else root / path


def _page_files(inputs: Iterable[Path]) -> list[Path]:
    files: list[Path] = []
    for path in inputs:
        if path.is_file():
            files.append(path)
        elif path.is_dir():
            files.extend(sorted(
                f for f in path.iterdir()
                if f.is_file() and f.suffix in PAGE_EXTENSIONS
            ))
    return files


def discover_static_routes(inputs: Iterable[Path]) -> list[StaticRoute]:
    """Routes for every page under ``inputs``. Missing inputs are ignored."""
    routes = []
    for f in _page_files(inputs):
        options = extract_page_options(f)
        if options is not None:
            routes.append(StaticRoute(
                route_url=options.route_url,
                slug=options.slug,
                html_path=f"{options.slug}.html",
            ))
    return routes


def match_route(routes: list[StaticRoute], url: str) -> StaticRoute | None:
    for r in routes:
        if r.route_url == url or url == r.route_url + "/" or url + "/" == r.route_url:
            return r
    return None


# ── Watcher ─────────────────────────────────────────────────────────


class PageWatcher:
    """Calls ``on_change`` when any page source under ``roots`` changes.

    Polls mtimes of ``.tsx``/``.jsx`` files. ``check()`` runs one poll and
    can be called directly; ``start()`` runs it on a daemon thread.
    """

    def __init__(
        self,
        roots: list[Path],
        on_change: Callable[[], None],
        interval: float = POLL_INTERVAL_S,
    ) -> None:
        self.roots = roots
        self.on_change = on_change
        self.interval = interval
        self._snapshot = self._scan()

    def _scan(self) -> dict[Path, float]:
        mtimes: dict[Path, float] = {}
        for root in self.roots:
            if root.is_file():
                candidates: Iterable[Path] = [root]
            elif root.is_dir():
                candidates = root.rglob("*")
            else:
                continue
            for f in candidates:
                if f.suffix not in PAGE_EXTENSIONS:
                    continue
                try:
                    mtimes[f] = f.stat().st_mtime
                except OSError:
                    continue  # deleted between listing and stat
        return mtimes

    def check(self) -> bool:
        current = self._scan()
        changed = current != self._snapshot
        self._snapshot = current
        if changed:
            self.on_change()
        return changed

    def start(self) -> threading.Thread:
        t = threading.Thread(target=self._poll_loop, daemon=True, name="islandgen-page-watcher")
        t.start()
        logger.debug("Page watcher started (poll every %.1fs)", self.interval)
        return t

    def _poll_loop(self) -> None:
        while True:
            time.sleep(self.interval)
            self.check()


# ── Middleware ──────────────────────────────────────────────────────


class StaticPageMiddleware:
    """WSGI middleware serving generated pages for their routes."""

    def __init__(
        self,
        app,  # type: ignore[no-untyped-def]
        options: PluginOptions,
        config: ResolvedBuildConfig,
        root: Path,
    ) -> None:
        self.app = app
        self.options = options
        self.config = config
        self.inputs = [_resolve(p, root) for p in options.pages]
        self._routes: list[StaticRoute] | None = None
        self._log = logger.info if options.verbose else logger.debug

    # ── Route cache ─────────────────────────────────────────────

    @property
    def routes(self) -> list[StaticRoute]:
        if self._routes is None:
            self._routes = discover_static_routes(self.inputs)
            if self._routes:
                self._log(
                    "Discovered %d route(s): %s",
                    len(self._routes), ", ".join(r.route_url for r in self._routes),
                )
        return self._routes

    def invalidate(self) -> None:
        self._routes = None

    def start_watcher(self) -> PageWatcher:
        watcher = PageWatcher(self.inputs, self.invalidate)
        watcher.start()
        return watcher

    # ── Dispatch ────────────────────────────────────────────────

    def _serve_asset(self, path: str) -> Response | None:
        prefix = self.config.base_url + "/"
        if not path.startswith(prefix):
            return None
        relative = path[len(prefix):]
        target = safe_join(str(self.config.out_path), relative)
        if target is None or not Path(target).is_file():
            return None
        mime = mimetypes.guess_type(target)[0] or "application/octet-stream"
        return Response(
            Path(target).read_bytes(),
            mimetype=mime,
            headers={DEV_HEADER: "asset", "Cache-Control": "no-cache"},
        )

    def _serve_page(self, path: str) -> Response | None:
        route = match_route(self.routes, path)
        if route is None:
            return None

        html_file = self.config.out_path / route.html_path
        if html_file.is_file():
            self._log("Serving static: %s", route.html_path)
            return Response(
                html_file.read_bytes(),
                mimetype="text/html",
                headers={DEV_HEADER: "static"},
            )

        self._log("Static not found: %s", route.html_path)
        return Response(
            not_generated_page(route.route_url, route.html_path),
            status=200,
            mimetype="text/html",
            headers={DEV_HEADER: "not-generated"},
        )

    def dispatch(self, path: str) -> Response | None:
        """Response for ``path``, or None to pass the request through."""
        if path.startswith(("/@", "/__")):
            return None

        response = self._serve_asset(path)
        if response is not None:
            return response

        if _ASSET_PATH_RE.search(path):
            return None

        try:
            return self._serve_page(path)
        except OSError as e:
            logger.error("Dev middleware error for %s: %s", path, e)
            return None

    def __call__(self, environ, start_response):  # type: ignore[no-untyped-def]
        request = Request(environ)
        response = self.dispatch(request.path)
        if response is None:
            return self.app(environ, start_response)
        return response(environ, start_response)
