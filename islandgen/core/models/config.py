"""
Build configuration models.

``ResolvedBuildConfig`` is what every pipeline stage reads. It is only
ever produced by ``resolve_config()``, which merges the user's partial
mapping over ``DEFAULT_CONFIG`` before validation, so no stage ever sees
an unset option.

``PluginOptions`` mirrors the ``islandgen.yml`` project file: which page
inputs to build, the user build config, and hosting settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

ImageFormat = Literal["webp", "avif", "original"]
LogLevel = Literal["debug", "info", "warning", "error", "silent"]


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BundlerOptions(_Strict):
    """External bundler invocation."""

    command: list[str]
    plugins: list[str]                  # Extra arguments for every bundler run
    external: list[str]


class ImageOptions(_Strict):
    enabled: bool
    formats: list[ImageFormat] = Field(min_length=1)
    quality: int = Field(ge=1, le=100)
    generate_srcset: bool
    srcset_multipliers: list[float]
    lcp_image_count: int = Field(ge=0)
    concurrency: int = Field(ge=1)
    timeout: float = Field(gt=0)


class CssOptions(_Strict):
    minify: Union[Literal["lightningcss", "esbuild"], Literal[False]]
    global_css_path: str


class TerserOptions(_Strict):
    drop_console: bool
    drop_debugger: bool
    passes: int = Field(ge=1)


class JsOptions(_Strict):
    minify: Union[Literal["terser", "esbuild"], Literal[False]]
    target: str
    terser_options: TerserOptions
    router: bool                        # Wrap hydrated islands in a MemoryRouter


class HtmlOptions(_Strict):
    head_tags: str
    body_tags: str
    lang: str


class SsrOptions(_Strict):
    command: list[str]
    island_module: str                  # Island runtime, relative to src_dir


class ResolvedBuildConfig(_Strict):
    """Fully populated build configuration shared by all page pipelines."""

    root: str
    out_dir: str
    base_url: str
    src_dir: str
    scratch_dir: str
    bundler: BundlerOptions
    images: ImageOptions
    css: CssOptions
    js: JsOptions
    html: HtmlOptions
    ssr: SsrOptions
    log_level: LogLevel

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    # ── Resolved paths ──────────────────────────────────────────

    def _path(self, value: str) -> Path:
        path = Path(value)
        return path if path.is_absolute() else Path(self.root) / path

    @property
    def root_path(self) -> Path:
        return Path(self.root)

    @property
    def out_path(self) -> Path:
        return self._path(self.out_dir)

    @property
    def src_path(self) -> Path:
        return self._path(self.src_dir)

    @property
    def scratch_path(self) -> Path:
        return self._path(self.scratch_dir)

    @property
    def global_css(self) -> Path:
        return self._path(self.css.global_css_path)

    @property
    def images_path(self) -> Path:
        return self.out_path / "images"


# ── Project file (islandgen.yml) ────────────────────────────────────


class HostingOptions(_Strict):
    firebase_json: str | None = None


class PluginOptions(_Strict):
    """Options for one build: page inputs, build config, hosting."""

    pages: list[str]
    build: dict = Field(default_factory=dict)
    hosting: HostingOptions = Field(default_factory=HostingOptions)
    dev_middleware: bool = True
    run_in_dev: bool = False
    verbose: bool = False
    dev_public_dir: str = "dist"        # SPA build served behind the dev middleware

    @field_validator("pages", mode="before")
    @classmethod
    def _coerce_pages(cls, value: object) -> object:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("build", mode="before")
    @classmethod
    def _coerce_build(cls, value: object) -> object:
        return value or {}
