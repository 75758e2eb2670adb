"""Logging setup and the default diagnostic sink."""

import logging
import os
from typing import Any

from .ansi import LogStyles, make_style, should_colorize
from .config import coerce_to_bool
from .constants import VERBOSE_ENV

__all__ = [
    "LogObjects",
    "LoggerSink",
    "get_logger",
    "init_logger",
    "is_verbose",
    "set_verbose",
]

SINK_LOGGER = "dbg"


class _VerboseState:
    """Container for mutable verbosity state to avoid global statement."""

    value: bool = coerce_to_bool(os.environ.get(VERBOSE_ENV))


_verbose_state = _VerboseState()


class LogObjects:
    """Reusable objects for loggers."""

    handlers: list[logging.Handler] = []
    names: set[str] = set()
    sinks: set[str] = set()


def is_verbose() -> bool:
    """Return True if dbgmacro logs its own operations."""
    return _verbose_state.value


def set_verbose(value: bool) -> None:
    """Set the verbosity of dbgmacro's own loggers."""
    _verbose_state.value = value
    for logger in _known_loggers():
        if logger.name not in LogObjects.sinks:
            logger.setLevel(logging.DEBUG if value else logging.WARNING)
    for handler in LogObjects.handlers:
        if isinstance(handler.formatter, ScreenLogFormatter):
            handler.setFormatter(ScreenLogFormatter(handler.formatter.use_colors))


class ScreenLogFormatter(logging.Formatter):
    """A custom formatter, adding colors based on log level.

    Respects NO_COLOR environment variable and TTY detection.
    """

    def __init__(self, use_colors: bool | None = None) -> None:
        super().__init__()
        self.use_colors = should_colorize() if use_colors is None else use_colors
        log_format = r"%(name)10s - %(message)s // %(filename)s:%(lineno)d" if is_verbose() else r"%(message)s"
        styles = {
            logging.DEBUG: LogStyles.DEBUG,
            logging.INFO: (),
            logging.WARNING: LogStyles.WARNING,
            logging.ERROR: LogStyles.ERROR,
            logging.CRITICAL: LogStyles.CRITICAL,
        }
        self._formatters = {}
        for level, codes in styles.items():
            prefix, suffix = make_style(*codes) if self.use_colors and codes else ("", "")
            self._formatters[level] = logging.Formatter(prefix + log_format + suffix)

    def format(self, record: logging.LogRecord) -> str:
        formatter = self._formatters.get(record.levelno, self._formatters[logging.INFO])
        return formatter.format(record)


def _known_loggers() -> list[logging.Logger]:
    """Return the loggers handed out by get_logger."""
    return [logging.getLogger(name) for name in sorted(LogObjects.names)]


def _attach_handlers(logger: logging.Logger) -> None:
    for handler in LogObjects.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)


def init_logger(filename: str | None = None, force_debug: bool = False, color: bool | None = None) -> None:
    """Initialize the logging system.

    Calling it again replaces the handlers of the loggers created so far.

    Args:
        filename: Optional filename to log to
        force_debug: If True, dbgmacro logs its own operations
        color: Force colors on or off (auto-detected if None)
    """
    for logger in _known_loggers():
        for handler in LogObjects.handlers:
            logger.removeHandler(handler)
    for handler in LogObjects.handlers:
        handler.close()
    LogObjects.handlers = []

    if filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setFormatter(logging.Formatter(fmt=r"%(asctime)s [%(levelname)s] %(name)s :: %(message)s"))
        LogObjects.handlers.append(file_handler)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ScreenLogFormatter(color))
    LogObjects.handlers.append(stream_handler)

    for logger in _known_loggers():
        _attach_handlers(logger)
    if force_debug:
        set_verbose(True)


def get_logger(name: str = "dbgmacro", level: int | None = None) -> logging.Logger:
    """Return a named logger.

    Args:
        name (str): logger's name
        level (int): logger's level (auto if not set)

    Returns:
        The logger instance
    """
    if not LogObjects.handlers:
        init_logger()
    logger = logging.getLogger(name)
    if level is None:
        logger.setLevel(logging.DEBUG if is_verbose() else logging.WARNING)
    else:
        logger.setLevel(level)
    logger.propagate = False
    LogObjects.names.add(name)
    _attach_handlers(logger)
    return logger


class LoggerSink:
    """Diagnostic sink writing one DEBUG record per line to the `dbg` logger."""

    def __init__(self, name: str = SINK_LOGGER) -> None:
        LogObjects.sinks.add(name)
        self.logger = get_logger(name, level=logging.DEBUG)

    def __call__(self, fmt: str, *args: Any) -> None:  # noqa: ANN401
        self.logger.debug(fmt, *args)
