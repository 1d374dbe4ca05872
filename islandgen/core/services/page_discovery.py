"""
Page discovery: finds page modules by static text analysis.

A page module exports an options literal:

    export const ssgOptions: SsgOptions = {
      slug: "about",
      routeUrl: "/about",
      Head: () => <title>About</title>,
      context: async (children) => ...,
    };

Discovery never imports or executes the module. The literal is matched
textually, which tolerates trees that are not buildable yet; the render
stage does the real import later.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from islandgen.core.models.pages import PageDescriptor
from islandgen.core.services.errors import DiscoveryError

logger = logging.getLogger(__name__)

# Component-file convention for directory inputs
PAGE_EXTENSIONS = (".tsx", ".jsx")

_OPTIONS_RE = re.compile(
    r"export\s+const\s+ssgOptions\s*(?::\s*\w+)?\s*=\s*\{([\s\S]*?)\n\};"
)
_SLUG_RE = re.compile(r"""slug\s*:\s*["'`]([^"'`]+)["'`]""")
_ROUTE_RE = re.compile(r"""routeUrl\s*:\s*["'`]([^"'`]+)["'`]""")
_HEAD_RES = (
    re.compile(r"Head\s*:\s*(?:\(\)|[^,}])"),
    re.compile(r"Head\s*\(\s*\)"),
)
_CONTEXT_RES = (
    re.compile(r"context\s*:\s*(?:async\s*)?\("),
    re.compile(r"context\s*:\s*\w+"),
)


@dataclass
class PageOptions:
    """Page metadata parsed from an options literal."""

    slug: str
    route_url: str = "/"
    has_head: bool = False
    has_context: bool = False


def parse_page_options(content: str) -> PageOptions | None:
    """Parse the ``ssgOptions`` literal out of module source text.

    Returns None when there is no literal or it has no string ``slug``.
    """
    m = _OPTIONS_RE.search(content)
    if not m:
        return None
    body = m.group(1)

    slug_match = _SLUG_RE.search(body)
    if not slug_match:
        return None

    route_match = _ROUTE_RE.search(body)
    return PageOptions(
        slug=slug_match.group(1),
        route_url=route_match.group(1) if route_match else "/",
        has_head=any(r.search(body) for r in _HEAD_RES),
        has_context=any(r.search(body) for r in _CONTEXT_RES),
    )


def extract_page_options(path: Path) -> PageOptions | None:
    """Read a module and parse its options; unreadable files yield None."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s: %s", path, e)
        return None
    return parse_page_options(content)


def _descriptor(path: Path, options: PageOptions) -> PageDescriptor:
    return PageDescriptor(
        component_path=path,
        slug=options.slug,
        route_url=options.route_url,
        has_head=options.has_head,
        has_context=options.has_context,
    )


def discover_pages(input_path: str | Path, root: Path | None = None) -> list[PageDescriptor]:
    """Discover pages from a single module or a directory of modules.

    Args:
        input_path: Page module or directory. Relative paths resolve
            against ``root`` (default: the current directory).
        root: Project root.

    Raises:
        DiscoveryError: The input does not exist, a single-file input has
            no options literal, or a directory yields zero pages.
    """
    path = Path(input_path)
    if not path.is_absolute():
        path = (root or Path.cwd()) / path
    path = path.resolve()

    if path.is_file():
        options = extract_page_options(path)
        if options is None:
            raise DiscoveryError(
                f"File {path} does not export 'ssgOptions'. "
                f"Single file input requires an ssgOptions export with a slug."
            )
        logger.info("Found page: %s -> %s", path.name, options.slug)
        return [_descriptor(path, options)]

    if not path.is_dir():
        raise DiscoveryError(f"Page input not found: {path}")

    files = sorted(
        f for f in path.iterdir()
        if f.is_file() and f.suffix in PAGE_EXTENSIONS
    )
    logger.info("Scanning %d file(s) in %s", len(files), path)

    pages: list[PageDescriptor] = []
    for f in files:
        options = extract_page_options(f)
        if options is None:
            logger.warning("Skipping %s (no ssgOptions export)", f.name)
            continue
        logger.info("Found page: %s -> %s", f.name, options.slug)
        pages.append(_descriptor(f, options))

    if not pages:
        raise DiscoveryError(f"No pages with an ssgOptions export found in {path}")

    return pages


def warn_duplicate_slugs(pages: list[PageDescriptor]) -> None:
    """Log a warning for every slug claimed by more than one page.

    Duplicates are not an error: pages are generated in order, so the
    later page overwrites the earlier one's artifacts.
    """
    seen: dict[str, Path] = {}
    for page in pages:
        previous = seen.get(page.slug)
        if previous is not None:
            logger.warning(
                "Duplicate slug '%s': %s overwrites %s",
                page.slug, page.component_path, previous,
            )
        seen[page.slug] = page.component_path
