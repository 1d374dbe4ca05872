"""
Template engine for generated code.

The server entry, hydration entry and HTML documents are emitted from
template files in ``templates/``: real TSX/HTML files that editors can
syntax-highlight. Two mechanisms:

  1. Conditional blocks:  // __IF_FEATURE_xxx__ / // __IF_NOT_FEATURE_xxx__ / // __ENDIF__
     (``<!-- __IF_FEATURE_xxx__ -->`` / ``<!-- __ENDIF__ -->`` in HTML)
  2. Placeholder substitution:  __PLACEHOLDER_NAME__
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Block bodies may not contain another __IF_ marker, so the innermost
# block always matches first and outer blocks resolve on a later pass
_BODY = r"((?:(?!__IF_(?:NOT_)?FEATURE_).)*?)"
_ENDIF = r"[ \t]*(?://|<!--)\s*__ENDIF__\s*(?:-->)?[ \t]*\n"

_IF_RE = re.compile(
    r"[ \t]*(?://|<!--)\s*__IF_FEATURE_(\w+)__\s*(?:-->)?[ \t]*\n" + _BODY + _ENDIF,
    re.DOTALL,
)
_IF_NOT_RE = re.compile(
    r"[ \t]*(?://|<!--)\s*__IF_NOT_FEATURE_(\w+)__\s*(?:-->)?[ \t]*\n" + _BODY + _ENDIF,
    re.DOTALL,
)
_PLACEHOLDER_RE = re.compile(r"__([A-Z][A-Z0-9_]*)__")


@lru_cache(maxsize=None)
def load_template(name: str) -> str:
    """Read a template file from the templates directory."""
    return (TEMPLATES_DIR / name).read_text(encoding="utf-8")


def process_template(
    content: str,
    features: dict[str, bool],
    placeholders: dict[str, str],
) -> str:
    """Process a template with conditional blocks and placeholders.

    Blocks are resolved innermost first. Placeholders are substituted in a
    single pass over the template, so substituted values (rendered markup,
    user head tags) are never rescanned. Unknown ``__NAME__`` tokens are
    left untouched.
    """
    changed = True
    while changed:
        changed = False

        def _replace_if(m: re.Match) -> str:
            nonlocal changed
            changed = True
            return m.group(2) if features.get(m.group(1), False) else ""

        def _replace_if_not(m: re.Match) -> str:
            nonlocal changed
            changed = True
            return "" if features.get(m.group(1), False) else m.group(2)

        content = _IF_RE.sub(_replace_if, content)
        content = _IF_NOT_RE.sub(_replace_if_not, content)

    # Clean up empty lines left by removed blocks (max 2 consecutive)
    content = re.sub(r"\n{3,}", "\n\n", content)

    def _substitute(m: re.Match) -> str:
        return placeholders.get(m.group(1), m.group(0))

    return _PLACEHOLDER_RE.sub(_substitute, content)


def render_template(
    name: str,
    features: dict[str, bool] | None = None,
    **placeholders: str,
) -> str:
    """Load and process a named template."""
    return process_template(load_template(name), features or {}, placeholders)


def js_string(value: str) -> str:
    """Encode a string as a JS literal that is safe inside a <script> tag."""
    return json.dumps(value).replace("</", "<\\/")
