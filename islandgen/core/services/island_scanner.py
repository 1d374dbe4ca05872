"""
Island scanner: walks a page's local import graph for ``<Island>`` usages.

Only local imports (``./x``, ``../x``, ``/x`` relative to the source root)
are followed; package imports are never entered. Every referenced island
must start with the directive marker:

    'use island';

Unresolvable or unmarked references are dropped with a ``Skipped`` record.
The page still builds, without hydration for that island.
"""

from __future__ import annotations

import logging
import posixpath
import re
from collections import deque
from pathlib import Path

from islandgen.core.models.pages import IslandDescriptor, Skipped

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")

_ISLAND_USAGE_RE = re.compile(
    r"""<Island\s+[^>]*component=(?:\{\s*)?["'`]([^"'`]+)["'`]"""
)
_IMPORT_RE = re.compile(
    r"""import\s+(?:[\w\s{},*]+\s+from\s+)?['"]([^'"]+)['"]"""
)
_DIRECTIVE_RE = re.compile(r"""^(['"])use island\1;?$""")


def has_island_directive(path: Path) -> bool:
    """True if the first non-empty line is exactly the directive marker."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    for line in content.splitlines():
        stripped = line.strip()
        if stripped:
            return bool(_DIRECTIVE_RE.match(stripped))
    return False


def resolve_module(base: Path) -> Path | None:
    """Resolve an extensionless module path to a script file.

    Tries the path as-is (script files only), then each script extension,
    then ``index.*`` inside a directory of that name.
    """
    if base.suffix in SCRIPT_EXTENSIONS and base.is_file():
        return base
    for ext in SCRIPT_EXTENSIONS:
        candidate = base.with_name(base.name + ext)
        if candidate.is_file():
            return candidate
    for ext in SCRIPT_EXTENSIONS:
        candidate = base / f"index{ext}"
        if candidate.is_file():
            return candidate
    return None


def resolve_import(specifier: str, from_file: Path, src_dir: Path) -> Path | None:
    """Resolve a local import specifier; package imports yield None."""
    if specifier.startswith("."):
        base = from_file.parent / specifier
    elif specifier.startswith("/"):
        base = src_dir / specifier.lstrip("/")
    else:
        return None
    resolved = resolve_module(Path(posixpath.normpath(base.as_posix())))
    return resolved.resolve() if resolved else None


def island_name(import_path: str) -> str:
    """Island name: the last segment of its import path."""
    return import_path.rstrip("/").split("/")[-1] or import_path


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return ""


def scan_islands(
    entry_file: Path,
    src_dir: Path,
) -> tuple[list[IslandDescriptor], list[Skipped]]:
    """Find every validated island reachable from ``entry_file``.

    Returns:
        (islands sorted by import path, dropped references)
    """
    entry = entry_file.resolve()
    src = src_dir.resolve()

    references: set[str] = set()
    visited: set[Path] = set()
    queue: deque[Path] = deque([entry])

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)

        content = _read(current)
        references.update(_ISLAND_USAGE_RE.findall(content))

        for specifier in _IMPORT_RE.findall(content):
            target = resolve_import(specifier, current, src)
            if target is not None and target not in visited:
                queue.append(target)

    logger.debug(
        "Scanned %d module(s) from %s, %d island reference(s)",
        len(visited), entry.name, len(references),
    )

    islands: list[IslandDescriptor] = []
    skipped: list[Skipped] = []

    for import_path in sorted(references):
        resolved = resolve_module(src / import_path.lstrip("/"))
        if resolved is None:
            skipped.append(Skipped(import_path, "could not resolve island component"))
            continue
        if not has_island_directive(resolved):
            skipped.append(Skipped(import_path, "component missing 'use island' directive"))
            continue
        islands.append(IslandDescriptor(
            name=island_name(import_path),
            file_path=resolved.resolve(),
            import_path=import_path,
        ))

    for s in skipped:
        logger.warning("Island dropped: %s", s)

    return islands, skipped
