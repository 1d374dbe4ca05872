"""
Image optimizer: localizes remote images referenced by rendered markup.

Pipeline (requires Pillow):
    1. Extract ``<img>`` tags; decode entity-encoded URLs
    2. Download each unique remote URL once, in bounded batches
    3. Transcode to the primary format at the declared size (never upscaled)
    4. Optionally write srcset variants at the configured multipliers
    5. Rewrite src/width/height/srcset in place; lazy-load below the fold

Local, data-URI and SVG images pass through untouched. A failed download
or transcode skips that image only. Without Pillow the whole phase is
skipped and the markup is returned unchanged.

Output filenames are ``{basename}_{md5(url)[:8]}[_{width}w].{format}``, so
the same image at the same width always lands on the same file.
"""

from __future__ import annotations

import hashlib
import html as html_lib
import io
import logging
import re
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlparse

from islandgen.core.models.config import ResolvedBuildConfig
from islandgen.core.models.pages import OptimizedImageRecord, Skipped

logger = logging.getLogger(__name__)

ImageFetcher = Callable[[str, float], bytes]
"""``fetch(url, timeout)``: returns the raw image bytes or raises."""

_USER_AGENT = "islandgen-image-optimizer/1.0"

_IMG_RE = re.compile(r"<img\s+([^>]*?)/?>", re.IGNORECASE)
_SRC_RE = re.compile(r"""(?<![\w-])src=["']([^"']+)["']""", re.IGNORECASE)
_WIDTH_RE = re.compile(r"""(?<![\w-])width=["']?(\d+)["']?""", re.IGNORECASE)
_HEIGHT_RE = re.compile(r"""(?<![\w-])height=["']?(\d+)["']?""", re.IGNORECASE)
_SRCSET_RE = re.compile(r"""(?<![\w-])srcset=["'][^"']*["']""", re.IGNORECASE)
_LOADING_RE = re.compile(r"(?<![\w-])loading=", re.IGNORECASE)
_IMG_OPEN_RE = re.compile(r"<img\s", re.IGNORECASE)

_MIME_TYPES = {
    "webp": "image/webp",
    "avif": "image/avif",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
}


@dataclass
class ImageRef:
    """One ``<img>`` occurrence in the markup."""

    url: str                            # Entity-decoded source URL
    width: int | None
    height: int | None
    element: str                        # The full tag, as it appears

    @property
    def is_remote(self) -> bool:
        return self.url.startswith(("http://", "https://"))


@dataclass
class Transcoded:
    data: bytes
    width: int
    height: int
    format: str                         # "webp" | "avif" | "jpeg" | "png" | ...


@dataclass
class ImageOptimizationResult:
    html: str
    images: list[OptimizedImageRecord] = field(default_factory=list)
    skipped: list[Skipped] = field(default_factory=list)
    original_bytes: int = 0
    optimized_bytes: int = 0


def _load_pillow() -> Any:
    """Return ``PIL.Image``, or None when Pillow is not installed."""
    try:
        from PIL import Image
    except ImportError:
        return None
    return Image


# ── Extraction ──────────────────────────────────────────────────────


def extract_images(markup: str) -> list[ImageRef]:
    """Find image references, skipping data URIs and SVGs."""
    refs: list[ImageRef] = []
    for m in _IMG_RE.finditer(markup):
        attrs = m.group(1)
        src = _SRC_RE.search(attrs)
        if not src:
            continue
        url = html_lib.unescape(src.group(1))
        if url.startswith("data:") or urlparse(url).path.lower().endswith(".svg"):
            continue
        width = _WIDTH_RE.search(attrs)
        height = _HEIGHT_RE.search(attrs)
        refs.append(ImageRef(
            url=url,
            width=int(width.group(1)) if width else None,
            height=int(height.group(1)) if height else None,
            element=m.group(0),
        ))
    return refs


def generate_filename(url: str, width: int | None, fmt: str) -> str:
    """Deterministic output filename for a source URL at a target width."""
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()[:8]
    stem = Path(urlparse(url).path).stem or "image"
    base = re.sub(r"[^a-zA-Z0-9_-]", "_", stem)
    size_suffix = f"_{width}w" if width else ""
    return f"{base}_{digest}{size_suffix}.{fmt}"


# ── Download ────────────────────────────────────────────────────────


def download_image(url: str, timeout: float) -> bytes:
    """Fetch an image over HTTP(S)."""
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return resp.read()


def download_all(
    urls: list[str],
    fetch: ImageFetcher,
    concurrency: int,
    timeout: float,
) -> tuple[dict[str, bytes], list[Skipped]]:
    """Download URLs in batches of ``concurrency``; failures are per-URL."""
    downloaded: dict[str, bytes] = {}
    failed: list[Skipped] = []

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        for start in range(0, len(urls), concurrency):
            batch = urls[start:start + concurrency]
            futures = [(url, pool.submit(fetch, url, timeout)) for url in batch]
            for url, future in futures:
                try:
                    downloaded[url] = future.result()
                except Exception as e:
                    failed.append(Skipped(url, f"download failed: {e}"))

    for s in failed:
        logger.warning("Image skipped: %s", s)
    return downloaded, failed


# ── Transcoding ─────────────────────────────────────────────────────


def _has_meaningful_alpha(img) -> bool:  # type: ignore[no-untyped-def]
    """Check if an RGBA image actually uses transparency."""
    if img.mode != "RGBA":
        return False
    alpha = img.split()[-1]
    extrema = alpha.getextrema()
    return extrema[0] < 255


def _target_size(
    orig: tuple[int, int],
    width: int | None,
    height: int | None,
) -> tuple[int, int]:
    orig_w, orig_h = orig
    final_w = width or orig_w
    final_h = height or orig_h

    # One dimension given: keep the aspect ratio
    if width and not height:
        final_h = round(orig_h * (width / orig_w))
    elif height and not width:
        final_w = round(orig_w * (height / orig_h))

    # Never upscale on either axis; shrink the box, keeping its aspect ratio
    if final_w > orig_w or final_h > orig_h:
        scale = min(orig_w / final_w, orig_h / final_h)
        final_w, final_h = round(final_w * scale), round(final_h * scale)

    return max(final_w, 1), max(final_h, 1)


def transcode(
    data: bytes,
    width: int | None,
    height: int | None,
    fmt: str,
    quality: int,
    Image: Any,
) -> Transcoded:
    """Resize and re-encode one image.

    Args:
        fmt: "webp", "avif", or "original" (re-encode in the source format).
        Image: The ``PIL.Image`` module.
    """
    from PIL import ImageOps

    img = Image.open(io.BytesIO(data))
    source_format = (img.format or "PNG").upper()
    img.load()

    final_w, final_h = _target_size(img.size, width, height)
    if (final_w, final_h) != img.size:
        if width and height:
            # Both dimensions declared: crop to cover
            img = ImageOps.fit(img, (final_w, final_h), method=Image.LANCZOS)
        else:
            img = img.resize((final_w, final_h), Image.LANCZOS)

    out_format = source_format if fmt == "original" else fmt.upper()
    save_kwargs: dict[str, Any] = {}

    if out_format == "JPEG":
        if img.mode in ("RGBA", "LA", "P"):
            if img.mode == "P":
                img = img.convert("RGBA")
            bg = Image.new("RGB", img.size, (255, 255, 255))
            bg.paste(img, mask=img.split()[-1] if "A" in img.mode else None)
            img = bg
        elif img.mode != "RGB":
            img = img.convert("RGB")
        save_kwargs = {"quality": quality, "optimize": True}
    elif out_format == "PNG":
        save_kwargs = {"compress_level": 9, "optimize": True}
    elif out_format in ("WEBP", "AVIF"):
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.mode or img.mode == "P" else "RGB")
        if img.mode == "RGBA" and not _has_meaningful_alpha(img):
            img = img.convert("RGB")
        save_kwargs = {"quality": quality}
        if out_format == "WEBP":
            save_kwargs["method"] = 4  # compression effort (0-6)

    buf = io.BytesIO()
    img.save(buf, format=out_format, **save_kwargs)
    return Transcoded(
        data=buf.getvalue(),
        width=img.size[0],
        height=img.size[1],
        format=out_format.lower(),
    )


# ── Markup rewriting ────────────────────────────────────────────────


def _set_attr(element: str, pattern: re.Pattern, name: str, value: str) -> str:
    attr = f'{name}="{value}"'
    if pattern.search(element):
        return pattern.sub(lambda _m: attr, element, count=1)
    return _IMG_OPEN_RE.sub(lambda _m: f"<img {attr} ", element, count=1)


def rewrite_element(
    element: str,
    record: OptimizedImageRecord,
    lazy: bool,
) -> str:
    new = _SRC_RE.sub(lambda _m: f'src="{record.local_url}"', element, count=1)
    new = _set_attr(new, _WIDTH_RE, "width", str(record.width))
    new = _set_attr(new, _HEIGHT_RE, "height", str(record.height))
    if record.srcset:
        new = _set_attr(new, _SRCSET_RE, "srcset", record.srcset)
    if lazy and not _LOADING_RE.search(new):
        new = _IMG_OPEN_RE.sub('<img loading="lazy" ', new, count=1)
    return new


def _write_once(path: Path, data: bytes, written: set[Path]) -> None:
    if path in written:
        return
    path.write_bytes(data)
    written.add(path)


# ── Public API ──────────────────────────────────────────────────────


def optimize_images(
    markup: str,
    config: ResolvedBuildConfig,
    fetch: ImageFetcher = download_image,
    written: set[Path] | None = None,
) -> ImageOptimizationResult:
    """Localize and optimize every remote image in ``markup``.

    Args:
        markup: Rendered body HTML.
        config: Resolved build config (``images`` options, out_dir, base_url).
        fetch: Image downloader.
        written: Files already written during this run. Shared across
            pages so a file is written at most once per run.
    """
    opts = config.images
    written = written if written is not None else set()

    Image = _load_pillow()
    if Image is None:
        logger.warning("Pillow not installed: skipping image optimization")
        return ImageOptimizationResult(
            html=markup,
            skipped=[Skipped("images", "Pillow not installed")],
        )

    refs = [r for r in extract_images(markup) if r.is_remote]
    if not refs:
        return ImageOptimizationResult(html=markup)

    unique_urls = list(dict.fromkeys(r.url for r in refs))
    logger.info("Downloading %d unique external image(s)...", len(unique_urls))
    downloads, skipped = download_all(unique_urls, fetch, opts.concurrency, opts.timeout)

    images_dir = config.images_path
    images_dir.mkdir(parents=True, exist_ok=True)
    images_url = f"{config.base_url}/images"
    primary_format = opts.formats[0]

    result = ImageOptimizationResult(html=markup, skipped=skipped)
    replacements: dict[str, str] = {}

    for ref in refs:
        if ref.element in replacements:
            continue
        data = downloads.get(ref.url)
        if data is None:
            continue

        try:
            primary = transcode(data, ref.width, ref.height, primary_format, opts.quality, Image)
            filename = generate_filename(ref.url, ref.width, primary.format)
            local_path = images_dir / filename
            _write_once(local_path, primary.data, written)

            srcset = None
            if opts.generate_srcset and ref.width:
                parts = []
                for multiplier in opts.srcset_multipliers:
                    variant_width = round(ref.width * multiplier)
                    variant_height = round(ref.height * multiplier) if ref.height else None
                    variant_name = generate_filename(ref.url, variant_width, primary.format)
                    variant_path = images_dir / variant_name
                    if variant_name != filename and variant_path not in written:
                        variant = transcode(
                            data, variant_width, variant_height, primary_format, opts.quality, Image,
                        )
                        _write_once(variant_path, variant.data, written)
                    parts.append(f"{images_url}/{variant_name} {multiplier:g}x")
                srcset = ", ".join(parts)
        except Exception as e:
            s = Skipped(ref.url, f"optimization failed: {e}")
            logger.warning("Image skipped: %s", s)
            result.skipped.append(s)
            continue

        record = OptimizedImageRecord(
            original_url=ref.url,
            local_path=local_path,
            local_url=f"{images_url}/{filename}",
            width=primary.width,
            height=primary.height,
            format=primary.format,
            byte_size=len(primary.data),
            srcset=srcset,
        )
        result.images.append(record)
        result.original_bytes += len(data)
        result.optimized_bytes += record.byte_size

        lazy = len(result.images) > opts.lcp_image_count
        replacements[ref.element] = rewrite_element(ref.element, record, lazy)

    html = markup
    for original, replacement in replacements.items():
        html = html.replace(original, replacement)
    result.html = html

    if result.images:
        saved = result.original_bytes - result.optimized_bytes
        pct = saved / result.original_bytes * 100 if result.original_bytes else 0.0
        logger.info(
            "Optimized %d image(s): %.1fKB → %.1fKB (%.1f%% savings)",
            len(result.images),
            result.original_bytes / 1024,
            result.optimized_bytes / 1024,
            pct,
        )
    return result


def generate_image_preloads(images: list[OptimizedImageRecord], count: int) -> str:
    """High-priority preload hints for the first ``count`` images."""
    tags = []
    for img in images[:count]:
        mime = _MIME_TYPES.get(img.format, f"image/{img.format}")
        srcset = f' imagesrcset="{img.srcset}"' if img.srcset else ""
        tags.append(
            f'<link rel="preload" as="image" href="{img.local_url}" '
            f'type="{mime}"{srcset} fetchpriority="high">'
        )
    return "\n    ".join(tags)
