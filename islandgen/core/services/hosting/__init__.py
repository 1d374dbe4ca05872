"""
Hosting platform integrations.

    configurator = get_configurator(options.hosting, root)
    if configurator:
        configurator.configure(pages, config.base_url)
"""

from __future__ import annotations

from pathlib import Path

from islandgen.core.models.config import HostingOptions
from islandgen.core.services.hosting.base import HostingConfigurator, rewrite_rules
from islandgen.core.services.hosting.firebase import FirebaseConfigurator

__all__ = [
    "FirebaseConfigurator",
    "HostingConfigurator",
    "get_configurator",
    "rewrite_rules",
]


def get_configurator(hosting: HostingOptions, root: Path) -> HostingConfigurator | None:
    """Configurator for the configured platform, or None when unset."""
    if hosting.firebase_json:
        path = Path(hosting.firebase_json)
        if not path.is_absolute():
            path = root / path
        return FirebaseConfigurator(path)
    return None
