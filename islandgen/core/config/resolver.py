"""
Config resolver: merges user build options over the defaults.

Merge rule: for each key the user sets, if both the default and the user
value are mappings they are merged key by key (recursively, user wins);
anything else, lists included, replaces the default wholesale. ``None``
user values are ignored so a partially filled YAML block keeps defaults.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from islandgen.core.config.loader import ConfigError
from islandgen.core.models.config import ResolvedBuildConfig

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: dict[str, Any] = {
    "root": "",
    "out_dir": "dist/static",
    "base_url": "/static",
    "src_dir": "src",
    "scratch_dir": "node_modules/.islandgen",
    "bundler": {
        "command": ["npx", "esbuild"],
        "plugins": [],
        "external": ["sharp", "fsevents"],
    },
    "images": {
        "enabled": True,
        "formats": ["webp"],
        "quality": 80,
        "generate_srcset": True,
        "srcset_multipliers": [1, 2],
        "lcp_image_count": 4,
        "concurrency": 5,
        "timeout": 15.0,
    },
    "css": {
        "minify": "lightningcss",
        "global_css_path": "src/index.css",
    },
    "js": {
        "minify": "terser",
        "target": "es2020",
        "terser_options": {
            "drop_console": True,
            "drop_debugger": True,
            "passes": 2,
        },
        "router": True,
    },
    "html": {
        "head_tags": "",
        "body_tags": "",
        "lang": "en",
    },
    "ssr": {
        "command": ["npx", "tsx"],
        "island_module": "islandgen/Island",
    },
    "log_level": "info",
}


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` merged over it. Inputs are not mutated."""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def resolve_config(
    user_config: Mapping[str, Any] | None = None,
    root: Path | None = None,
) -> ResolvedBuildConfig:
    """Resolve a partial user config into a fully populated one.

    Args:
        user_config: Partial build options (same shape as DEFAULT_CONFIG).
        root: Project root used to resolve relative paths. Defaults to the
            ``root`` option, then to the current directory.

    Raises:
        ConfigError: If the merged config does not validate.
    """
    merged = deep_merge(DEFAULT_CONFIG, user_config or {})

    if root is not None:
        merged["root"] = str(root)
    merged["root"] = str(Path(merged["root"] or Path.cwd()).resolve())

    try:
        config = ResolvedBuildConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid build configuration: {e}") from e

    logger.debug(
        "Resolved build config (root=%s, out_dir=%s, base_url=%s)",
        config.root, config.out_dir, config.base_url,
    )
    return config
