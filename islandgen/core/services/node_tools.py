"""
Node toolchain helpers: subprocess runner, scratch resources, esbuild args.

The pipeline never renders or bundles anything itself. It writes a
synthetic entry module into the scratch directory and hands it to a Node
tool (``tsx`` for SSR, ``esbuild`` for bundles, ``lightningcss`` /
``terser`` as optional minifier post-steps).

Stages take the runner as a parameter (``CommandRunner``) so the whole
pipeline can be driven without Node installed.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.services.errors import BundleError, StaticGenError

logger = logging.getLogger(__name__)

# Static assets referenced from bundled code are emitted as files
_FILE_LOADER_EXTENSIONS = (
    ".woff", ".woff2", ".ttf", ".eot",
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".avif",
)

# Emitted asset location, relative to the bundle output dir
ASSETS_SUBDIR = "assets"

# Exit code reported when the tool binary itself is missing
_NOT_FOUND_EXIT = 127

_TAIL_LINES = 30


@dataclass
class CommandResult:
    """Outcome of one external tool run."""

    returncode: int
    output: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, count: int = 10) -> str:
        lines = [line for line in self.output if line.strip()][-count:]
        return "\n".join(lines) if lines else "(no output captured)"


CommandRunner = Callable[[list[str], Path], CommandResult]
"""``run(cmd, cwd)``: executes a tool and returns its captured output."""


def run_command(cmd: list[str], cwd: Path) -> CommandResult:
    """Run a command, streaming its output to the debug log.

    A missing executable is reported as exit code 127 instead of raised,
    so callers handle it with the same error path as a failed run.
    """
    logger.debug("$ %s  (cwd=%s)", " ".join(cmd), cwd)

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError:
        return CommandResult(
            returncode=_NOT_FOUND_EXIT,
            output=[f"{cmd[0]}: command not found (is Node.js installed?)"],
        )

    # Capture output tail for error reporting
    output_tail: deque[str] = deque(maxlen=_TAIL_LINES)
    if proc.stdout:
        for line in proc.stdout:
            stripped = line.rstrip()
            output_tail.append(stripped)
            logger.debug("  %s", stripped)
    proc.wait()

    return CommandResult(returncode=proc.returncode, output=list(output_tail))


def require_success(
    result: CommandResult,
    what: str,
    error_cls: type[StaticGenError] = BundleError,
) -> None:
    """Raise ``error_cls`` with the last output lines if a run failed."""
    if result.ok:
        return
    raise error_cls(
        f"{what} failed (exit code {result.returncode})\n\n"
        f"Last output lines:\n{result.tail()}"
    )


# ── Scratch resources ───────────────────────────────────────────────


@contextmanager
def scratch_file(directory: Path, name: str, content: str) -> Iterator[Path]:
    """Write a synthetic entry file, removing it on every exit path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(content, encoding="utf-8")
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


@contextmanager
def scratch_dir(parent: Path, name: str) -> Iterator[Path]:
    """Create an empty private directory, removing it on every exit path."""
    path = parent / name
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


def import_specifier(path: Path) -> str:
    """Absolute import specifier for a file (posix separators)."""
    return path.resolve().as_posix()


def copy_assets(build_dir: Path, out_dir: Path) -> list[Path]:
    """Move bundler-emitted assets (fonts, images) into the output dir."""
    src = build_dir / ASSETS_SUBDIR
    if not src.is_dir():
        return []
    copied: list[Path] = []
    for f in sorted(src.rglob("*")):
        if not f.is_file():
            continue
        dest = out_dir / ASSETS_SUBDIR / f.relative_to(src)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(f, dest)
        copied.append(dest)
    return copied


# ── Command builders ────────────────────────────────────────────────


def esbuild_command(
    config: ResolvedBuildConfig,
    entry: Path,
    outdir: Path,
    entry_name: str,
    *,
    minify: bool = False,
) -> list[str]:
    """Browser ESM bundle of ``entry`` into ``outdir/{entry_name}.*``."""
    cmd = [
        *config.bundler.command,
        str(entry),
        "--bundle",
        "--format=esm",
        "--platform=browser",
        "--jsx=automatic",
        f"--target={config.js.target}",
        f"--outdir={outdir}",
        f"--entry-names={entry_name}",
        f"--asset-names={ASSETS_SUBDIR}/[name]-[hash]",
        f"--public-path={config.base_url or '/'}",
        "--log-level=warning",
    ]
    cmd.extend(f"--loader:{ext}=file" for ext in _FILE_LOADER_EXTENSIONS)
    cmd.extend(f"--external:{name}" for name in config.bundler.external)
    if minify:
        cmd.append("--minify")
    cmd.extend(config.bundler.plugins)
    return cmd


def lightningcss_command(css_file: Path) -> list[str]:
    return ["npx", "lightningcss", "--minify", str(css_file), "-o", str(css_file)]


def terser_command(config: ResolvedBuildConfig, js_file: Path) -> list[str]:
    opts = config.js.terser_options
    compress = (
        f"drop_console={str(opts.drop_console).lower()},"
        f"drop_debugger={str(opts.drop_debugger).lower()},"
        f"passes={opts.passes}"
    )
    return [
        "npx", "terser", str(js_file),
        "--module",
        "--compress", compress,
        "--mangle",
        "-o", str(js_file),
    ]
