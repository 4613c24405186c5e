"""
Logging configuration for the smconnect CLI.

``main.py`` calls ``setup_logging`` once; modules log through
``logging.getLogger(__name__)``. Console output goes to stderr so that
``--json`` output on stdout stays machine-readable.

Console level precedence: --debug > --verbose > --quiet > SMC_LOG_LEVEL > WARNING.
SMC_LOG_FILE adds a file handler; SMC_LOG_FILE_LEVEL sets its level.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path

ENV_LOG_LEVEL = "SMC_LOG_LEVEL"
ENV_LOG_FILE = "SMC_LOG_FILE"
ENV_LOG_FILE_LEVEL = "SMC_LOG_FILE_LEVEL"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"

# (highest level the format applies to, format, datefmt); first match wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

# libraries we call into; only their warnings matter outside --debug
_LIBRARY_LOGGERS = ("yaml", "pydantic")


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Console level name from the global CLI flags and the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return (env or {}).get(ENV_LOG_LEVEL) or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install the console handler (and optionally a file handler) on the root logger.

    Args:
        level: Console level name.
        log_file: Path of a log file; its directory is created when missing.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold library loggers at WARNING unless ``level`` is DEBUG.
    """
    console_level = _parse_level(level)
    fmt, datefmt = next(
        (f, d) for limit, f, d in _CONSOLE_FORMATS if console_level <= limit
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level or level)
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(fh)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _LIBRARY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
