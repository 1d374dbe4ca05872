"""
Dev server: Flask app factory.

Serves the single-page app build (``dev_public_dir``, ``dist`` by default)
with index fallback for client-side routes. The static page middleware
sits in front of it and answers for generated routes and assets.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from flask import Blueprint, Flask, abort, current_app, send_file

from islandgen.core.models.config import PluginOptions
from islandgen.core.services.plugin import SsgPlugin

logger = logging.getLogger(__name__)

spa_bp = Blueprint("spa", __name__)


def _public_dir() -> Path:
    return Path(current_app.config["PUBLIC_DIR"])


@spa_bp.route("/")
@spa_bp.route("/<path:filepath>")
def serve_spa(filepath: str = "index.html"):  # type: ignore[no-untyped-def]
    """Serve the SPA build, falling back to its index.html."""
    public_dir = _public_dir()
    if not public_dir.is_dir():
        abort(404, description=f"No app build at {public_dir}. Build it first.")

    requested = (public_dir / filepath).resolve()
    if public_dir.resolve() not in requested.parents and requested != public_dir.resolve():
        abort(404)

    # Direct file match
    if requested.is_file():
        mime = mimetypes.guess_type(str(requested))[0] or "application/octet-stream"
        return send_file(requested, mimetype=mime)

    # SPA fallback
    root_index = public_dir / "index.html"
    if root_index.is_file():
        return send_file(root_index, mimetype="text/html")

    abort(404, description=f"File not found: {filepath}")


def create_app(
    project_root: Path,
    options: PluginOptions,
    plugin: SsgPlugin | None = None,
    watch: bool = False,
) -> Flask:
    """Create the dev server app with the static page middleware installed.

    Args:
        project_root: Root directory of the project.
        options: Project options from islandgen.yml.
        plugin: Existing plugin instance (a new one is created otherwise).
        watch: Poll page sources and refresh the route cache on change.
    """
    app = Flask(__name__)

    root = project_root.resolve()
    public_dir = Path(options.dev_public_dir)
    if not public_dir.is_absolute():
        public_dir = root / public_dir

    app.config["PROJECT_ROOT"] = str(root)
    app.config["PUBLIC_DIR"] = str(public_dir)

    app.register_blueprint(spa_bp)

    plugin = plugin or SsgPlugin(options, root)
    plugin.config_resolved("serve")
    plugin.configure_server(app, watch=watch)
    app.extensions["islandgen"] = plugin

    logger.info("Dev app created (root=%s, public=%s)", root, public_dir)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 5173,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting dev server on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
