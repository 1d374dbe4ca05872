"""
Page pipeline records: the values passed between pipeline stages.

Discovery produces ``PageDescriptor``s, the island scanner produces
``IslandDescriptor``s, and the orchestrator hands ``GeneratedPageInfo``
records to the hosting configurators once every page has been written.

Degraded outcomes (an island that failed validation, an image that could
not be downloaded) are recorded as ``Skipped`` values instead of raised,
so a stage can report them without unwinding the page pipeline.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path


# ── Descriptors ─────────────────────────────────────────────────────


@dataclass
class PageDescriptor:
    """A page module found by static analysis."""

    component_path: Path                # Absolute path to the page module
    slug: str                           # Output key: "{slug}.html"
    route_url: str = "/"
    has_head: bool = False
    has_context: bool = False


@dataclass
class IslandDescriptor:
    """A validated island reference reachable from a page."""

    name: str                           # Last segment of import_path
    file_path: Path                     # Absolute path to the island module
    import_path: str                    # Logical path relative to src_dir

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "filePath": str(self.file_path),
            "importPath": self.import_path,
        }


@dataclass
class Skipped:
    """Something a stage dropped, with the reason it was dropped."""

    subject: str
    reason: str

    def __str__(self) -> str:
        return f"{self.subject}: {self.reason}"


# ── Stage outputs ───────────────────────────────────────────────────


@dataclass
class RenderedPage:
    """Markup produced by the SSR stage for one page."""

    body_html: str
    head_html: str = ""
    warnings: list[Skipped] = field(default_factory=list)


@dataclass
class OptimizedImageRecord:
    """One remote image rewritten to a local optimized asset."""

    original_url: str
    local_path: Path
    local_url: str
    width: int
    height: int
    format: str
    byte_size: int
    srcset: str | None = None


@dataclass
class GeneratedPageInfo:
    """Public result for one generated page."""

    slug: str
    route_url: str
    html_path: str                      # Relative to out_dir, e.g. "home.html"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class HostingRewriteRule:
    """A route → artifact rewrite in a hosting manifest."""

    source: str
    destination: str

    def to_dict(self) -> dict:
        return {"source": self.source, "destination": self.destination}


# ── Pipeline bookkeeping ────────────────────────────────────────────


@dataclass
class StageInfo:
    """Declaration of a page pipeline stage (before execution)."""

    name: str                           # Machine name: "render", "css", etc.
    label: str                          # Human label: "SSR Render"


@dataclass
class StageResult:
    """Result of executing one page pipeline stage."""

    name: str
    label: str
    status: str = "pending"             # "pending" | "done" | "error" | "skipped"
    duration_ms: int = 0
    error: str = ""
    detail: dict = field(default_factory=dict)


@dataclass
class PageResult:
    """Result of one page's full pipeline run."""

    slug: str
    route_url: str
    component_path: str
    stages: list[StageResult] = field(default_factory=list)
    warnings: list[Skipped] = field(default_factory=list)
    ok: bool = False
    total_duration_ms: int = 0
    html_path: str = ""                 # Absolute path of the written document

    @property
    def failed_stage(self) -> StageResult | None:
        return next((s for s in self.stages if s.status == "error"), None)

    def to_info(self) -> GeneratedPageInfo:
        return GeneratedPageInfo(
            slug=self.slug,
            route_url=self.route_url,
            html_path=f"{self.slug}.html",
        )

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "route_url": self.route_url,
            "component_path": self.component_path,
            "ok": self.ok,
            "total_duration_ms": self.total_duration_ms,
            "html_path": self.html_path,
            "warnings": [str(w) for w in self.warnings],
            "stages": [asdict(s) for s in self.stages],
        }
