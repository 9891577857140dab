"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  CROSSRUN_LOG_LEVEL env var  >  WARNING (default)

Optional file output via CROSSRUN_LOG_FILE / CROSSRUN_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

# ── Format strings ──────────────────────────────────────────────

# WARNING and above: the message alone
_FMT_MINIMAL = "%(message)s"

# INFO: timestamp and logger name
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"

# DEBUG and file output: level, logger and line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

_DATEFMT_CONSOLE = "%H:%M:%S"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

ENV_LOG_LEVEL = "CROSSRUN_LOG_LEVEL"
ENV_LOG_FILE = "CROSSRUN_LOG_FILE"
ENV_LOG_FILE_LEVEL = "CROSSRUN_LOG_FILE_LEVEL"


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(ENV_LOG_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_CONSOLE
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_CONSOLE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)
    logging.raiseExceptions = False


def setup_logging_from_env(level: str, environ: Mapping[str, str] | None = None) -> None:
    """``setup_logging`` with the file handler taken from the environment."""
    env = os.environ if environ is None else environ
    setup_logging(
        level=level,
        log_file=env.get(ENV_LOG_FILE),
        log_file_level=env.get(ENV_LOG_FILE_LEVEL),
    )


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
