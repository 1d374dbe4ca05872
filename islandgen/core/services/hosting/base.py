"""
Hosting configurator base: platform-neutral interface.

A configurator receives every page generated in one run and updates the
platform's routing manifest so each route is served from its artifact.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from islandgen.core.models.pages import GeneratedPageInfo, HostingRewriteRule


class HostingConfigurator(ABC):
    """Abstract base for hosting platform integrations."""

    name: str = ""

    @abstractmethod
    def configure(self, pages: list[GeneratedPageInfo], base_url: str) -> list[HostingRewriteRule]:
        """Apply rewrite rules for ``pages``.

        Returns:
            The rules that were written.

        Raises:
            HostingError: The manifest is missing or unusable.
        """


def rewrite_rules(pages: list[GeneratedPageInfo], base_url: str) -> list[HostingRewriteRule]:
    """One route → artifact rule per generated page."""
    return [
        HostingRewriteRule(source=page.route_url, destination=f"{base_url}/{page.html_path}")
        for page in pages
    ]
