"""
Logging configuration — central setup for the CLI and the boot unit.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  SULLIVAN_LOG_LEVEL  >  WARNING

Optional file output via ``--log FILE`` or SULLIVAN_LOG_FILE, with its own
level in SULLIVAN_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_DETAIL = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s"

# Console formats by threshold, checked lowest first.
_CONSOLE_FORMATS = (
    (logging.DEBUG, _DETAIL, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = ("%(message)s", None)

# Stage 2 runs unattended at boot; its log needs full dates.
_FILE_FORMAT = (_DETAIL, "%Y-%m-%d %H:%M:%S")

_NOISY_LOGGERS = ("filelock",)


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env_level: str | None = None,
) -> str:
    """Pick the console level name from CLI flags and the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env_level or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file (appended to).
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
    """
    numeric_level = _parse_level(level)

    fmt, datefmt = _console_format(numeric_level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Root must pass whatever either handler wants.
    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(*_FILE_FORMAT))
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric


def _console_format(numeric_level: int) -> tuple[str, str | None]:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if numeric_level <= threshold:
            return fmt, datefmt
    return _CONSOLE_DEFAULT
