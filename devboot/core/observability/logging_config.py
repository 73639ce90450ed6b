"""
Logging configuration — console and file handlers for the devboot CLI.

``setup_logging`` runs once from the CLI group callback; modules only do
``logger = logging.getLogger(__name__)``.  Console records are shaped by
the install display mode (see ``ConsoleFormatter``), and ``install``
re-shapes them through ``set_display_mode`` once its flags are known.

Level precedence:
    --debug / --verbose / --quiet  >  DEVBOOT_LOG_LEVEL  >  WARNING

DEVBOOT_LOG_FILE adds a file handler with full detail, at
DEVBOOT_LOG_FILE_LEVEL or the console level.
"""

from __future__ import annotations

import logging
import sys

from devboot.core.models.package import DisplayMode

LOG_LEVEL_ENV = "DEVBOOT_LOG_LEVEL"
LOG_FILE_ENV = "DEVBOOT_LOG_FILE"
LOG_FILE_LEVEL_ENV = "DEVBOOT_LOG_FILE_LEVEL"

CONSOLE_HANDLER_NAME = "devboot.console"

_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FMT_FILE = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_CLOCK = "%H:%M:%S"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# distro logs every lookup at DEBUG
_QUIET_LOGGERS = ("distro",)


class ConsoleFormatter(logging.Formatter):
    """Formats console records for one ``DisplayMode``.

    At DEBUG every mode shows the full ``name:lineno`` layout.
    """

    _ICONS = {logging.WARNING: "⚠️ ", logging.ERROR: "❌", logging.CRITICAL: "❌"}

    def __init__(self, display_mode: DisplayMode = DisplayMode.PROGRESS, debug: bool = False):
        self.display_mode = display_mode
        self.debug = debug
        fmt, datefmt = self._layout()
        super().__init__(fmt, datefmt=datefmt)

    def _layout(self) -> tuple[str, str | None]:
        if self.debug:
            return _FMT_DEBUG, _DATEFMT_CLOCK
        if self.display_mode is DisplayMode.VERBOSE:
            # interleaved with child output, so say who is talking
            return "%(asctime)s [%(name)s] %(message)s", _DATEFMT_CLOCK
        if self.display_mode is DisplayMode.PLAIN:
            return "%(levelname)s: %(message)s", None
        return "%(message)s", None

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if self.debug or self.display_mode is not DisplayMode.PROGRESS:
            return text
        # progress mode: records sit under the step lines
        icon = self._ICONS.get(record.levelno)
        return f"{icon} {text}" if icon else f"   {text}"


def setup_logging(
    level: str = "WARNING",
    display_mode: DisplayMode = DisplayMode.PROGRESS,
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with devboot's.

    Args:
        level: Console level name; unknown names mean WARNING.
        display_mode: Initial console layout.
        log_file: Also log to this file.
        log_file_level: File level name (default: ``level``).
        quiet_third_party: Hold library loggers at WARNING below DEBUG.
    """
    console_level = _parse_level(level)
    debug = console_level <= logging.DEBUG

    console = logging.StreamHandler(sys.stderr)
    console.set_name(CONSOLE_HANDLER_NAME)
    console.setLevel(console_level)
    console.setFormatter(ConsoleFormatter(display_mode, debug=debug))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(file_handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and not debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def set_display_mode(display_mode: DisplayMode) -> None:
    """Switch the console handler to ``display_mode``; no-op before setup."""
    for handler in logging.getLogger().handlers:
        if handler.get_name() != CONSOLE_HANDLER_NAME:
            continue
        current = handler.formatter
        debug = isinstance(current, ConsoleFormatter) and current.debug
        handler.setFormatter(ConsoleFormatter(display_mode, debug=debug))


def resolve_level(verbose: bool, quiet: bool, debug: bool, env_level: str | None) -> str:
    """CLI flags win over the environment; WARNING otherwise."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env_level or "WARNING"


def _parse_level(level: str | None) -> int:
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
