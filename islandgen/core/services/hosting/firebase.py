"""
Firebase hosting configurator: keeps firebase.json rewrites in sync.

Only rules this tool wrote are ever removed. A rule is ours when its
source is a plain route (no ``*`` glob) and its destination is under
``{base_url}/`` and ends in ``.html``. With a root base URL every local
``.html`` destination would match, so the check narrows to the
destinations generated in the current run. New rules go immediately
before the catch-all (``**`` or ``/**``) when there is one, otherwise at
the front. Hand-written rules keep their order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection
from pathlib import Path

from islandgen.core.models.pages import GeneratedPageInfo, HostingRewriteRule
from islandgen.core.services.errors import HostingError
from islandgen.core.services.hosting.base import HostingConfigurator, rewrite_rules

logger = logging.getLogger(__name__)

_CATCH_ALL_SOURCES = ("**", "/**")


def is_managed_rewrite(rule: dict, base_url: str, known: Collection[str] = ()) -> bool:
    """True when ``rule`` was written by this configurator.

    Args:
        known: Destinations generated in this run. Required to claim
            anything when ``base_url`` is empty.
    """
    source = rule.get("source")
    destination = rule.get("destination")
    if not isinstance(source, str) or "*" in source:
        return False
    if not isinstance(destination, str) or not destination.endswith(".html"):
        return False
    if not base_url:
        return destination in known
    return destination.startswith(base_url + "/")


def merge_rewrites(
    existing: list[dict],
    new_rules: list[HostingRewriteRule],
    base_url: str,
) -> list[dict]:
    """Replace managed rules in ``existing`` with ``new_rules``."""
    known = {rule.destination for rule in new_rules}
    kept = [r for r in existing if not is_managed_rewrite(r, base_url, known)]
    inserted = [rule.to_dict() for rule in new_rules]

    catch_all = next(
        (i for i, r in enumerate(kept) if r.get("source") in _CATCH_ALL_SOURCES),
        None,
    )
    if catch_all is None:
        return inserted + kept
    return kept[:catch_all] + inserted + kept[catch_all:]


class FirebaseConfigurator(HostingConfigurator):
    """Rewrites the ``hosting.rewrites`` array of a firebase.json file."""

    name = "firebase"

    def __init__(self, firebase_json: Path) -> None:
        self.path = firebase_json

    def _load(self) -> dict:
        if not self.path.is_file():
            raise HostingError(f"Firebase config not found: {self.path}")
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise HostingError(f"Invalid JSON in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise HostingError(f"Expected a JSON object in {self.path}")
        return data

    def configure(self, pages: list[GeneratedPageInfo], base_url: str) -> list[HostingRewriteRule]:
        data = self._load()

        # Multi-site configs: the first hosting entry is the one we manage
        hosting = data.get("hosting")
        if isinstance(hosting, list):
            hosting = hosting[0] if hosting else None
        if not isinstance(hosting, dict):
            raise HostingError(f"No hosting configuration found in {self.path}")

        rules = rewrite_rules(pages, base_url)
        hosting["rewrites"] = merge_rewrites(hosting.get("rewrites") or [], rules, base_url)

        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        logger.info("Updated %s with %d rewrite(s)", self.path.name, len(rules))
        return rules
