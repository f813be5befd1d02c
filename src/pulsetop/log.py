"""
Logging setup for pulsetop.

Everything logs through structlog. The TUI owns the terminal, so when a log
file is configured the renderer writes there instead of stderr.
"""

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog

_log_stream: TextIO | None = None


def setup_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: Path | None = None,
) -> None:
    """
    Configure structlog for the whole process.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: "console" for human readable lines, "json" for one JSON object per line.
        log_file: Optional file to append to. Defaults to stderr.
    """
    global _log_stream

    if _log_stream is not None and _log_stream is not sys.stderr:
        _log_stream.close()
        _log_stream = None

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _log_stream = log_file.open("a", encoding="utf-8")
    else:
        _log_stream = sys.stderr

    renderer: structlog.typing.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_file is None and _log_stream.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.WriteLoggerFactory(file=_log_stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.typing.BindableLogger:
    """Get a lazily configured logger bound to a module name."""
    return structlog.get_logger(name, logger_name=name)
