"""
Logging configuration for the CLI, the dev server and library callers.

The CLI calls ``setup_logging`` once at startup. Library entry points
(``generate_static_with_info``, ``SsgPlugin``) never install handlers;
they call ``apply_build_level`` so ``build.log_level`` governs the
``islandgen`` logger tree inside whatever handlers the host set up.

Level precedence:
    CLI flag  >  ISLANDGEN_LOG_LEVEL  >  build.log_level  >  WARNING

Optional file output via ISLANDGEN_LOG_FILE / ISLANDGEN_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LEVEL = "ISLANDGEN_LOG_LEVEL"
ENV_FILE = "ISLANDGEN_LOG_FILE"
ENV_FILE_LEVEL = "ISLANDGEN_LOG_FILE_LEVEL"

PACKAGE_LOGGER = "islandgen"

# (max level, format, datefmt): first row whose level is >= the console level wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(levelname)s %(message)s", None),
)
_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%Y-%m-%d %H:%M:%S")

# Loggers that flood INFO with request lines and plugin chatter
_NOISY_LOGGERS = ("urllib3", "PIL", "werkzeug")

# build.log_level accepts "silent", which has no stdlib level
_LEVEL_ALIASES = {"silent": "CRITICAL"}

# Set once the CLI has resolved the level; library calls may not override it
_pinned = False


def parse_level(level: str | None) -> int:
    """Level name (any case, or "silent") → numeric level; unknown → WARNING."""
    if not level:
        return logging.WARNING
    name = _LEVEL_ALIASES.get(level.lower(), level.upper())
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else logging.WARNING


def _console_formatter(level: int) -> logging.Formatter:
    for ceiling, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= ceiling:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_FORMATS[-1][1])


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
    pinned: bool = False,
) -> None:
    """Install the process-wide handlers.

    Args:
        level: Console level name; "silent" suppresses everything below CRITICAL.
        log_file: Also write full-detail records to this path.
        log_file_level: Level for ``log_file``; defaults to ``level``.
        quiet_third_party: Hold ``_NOISY_LOGGERS`` at WARNING unless debugging.
        pinned: The caller already resolved the level (CLI flag, env var
            or project file), so ``apply_build_level`` must leave it alone.
    """
    global _pinned
    console_level = parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    lowest = console_level
    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else console_level
        lowest = min(lowest, file_level)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(*_FILE_FORMAT))
        root.addHandler(fh)

    root.setLevel(lowest)
    logging.getLogger(PACKAGE_LOGGER).setLevel(lowest)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False
    _pinned = pinned


def apply_build_level(level: str | None) -> bool:
    """Apply ``build.log_level`` to the ``islandgen`` logger.

    No-op when the CLI already resolved the level, or when
    ``ISLANDGEN_LOG_LEVEL`` is set. Returns True when the level was applied.
    """
    if _pinned or os.environ.get(ENV_LEVEL) or not level:
        return False
    logging.getLogger(PACKAGE_LOGGER).setLevel(parse_level(level))
    return True
