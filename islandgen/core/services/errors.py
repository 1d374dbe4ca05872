"""
Build errors: fatal conditions that abort a page or the whole run.

Degraded conditions (a dropped island, an unoptimized image) are never
raised; stages report them as ``Skipped`` records instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from islandgen.core.models.pages import PageResult


class StaticGenError(Exception):
    """Base class for fatal static generation errors."""


class DiscoveryError(StaticGenError):
    """No usable page input (missing path, no options block, zero pages)."""


class RenderError(StaticGenError):
    """The SSR collaborator failed or could not be started."""


class BundleError(StaticGenError):
    """A bundler or minifier run failed."""


class HostingError(StaticGenError):
    """The hosting manifest is missing or has no hosting section."""


class GenerationError(StaticGenError):
    """One or more pages failed during a generation run."""

    def __init__(self, results: list[PageResult]) -> None:
        failed = [r for r in results if not r.ok]
        lines = []
        for r in failed:
            stage = r.failed_stage
            where = stage.label if stage else "unknown stage"
            error = stage.error if stage else ""
            lines.append(f"  • {r.slug} ({where}): {error}")
        super().__init__(
            f"{len(failed)} of {len(results)} page(s) failed:\n" + "\n".join(lines)
        )
        self.results = results
        self.failed = failed
