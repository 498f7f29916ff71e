"""
Structured logging for droidspec.

structlog events are routed through the standard library ``droidspec``
logger to stderr. stdout is left to command output such as rendered
scripts and JSON reports, so it can be piped into files.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import Config

LOGGER_NAME = "droidspec"


def resolve_log_format(log_format: str, stream: TextIO | None = None) -> str:
    """Resolve ``auto`` to ``console`` or ``json`` for the given stream.

    Args:
        log_format: Configured format: ``auto``, ``console`` or ``json``.
        stream: Stream logs are written to; defaults to stderr.

    Returns:
        ``console`` or ``json``.
    """
    if log_format != "auto":
        return log_format
    stream = stream or sys.stderr
    return "console" if stream.isatty() else "json"


def _build_handler(log_format: str, debug: bool) -> logging.Handler:
    if log_format == "console":
        return RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=debug,
        )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(config: Config | None = None) -> None:
    """Configure structured logging for the application.

    Calling it again replaces the previous handler, so level and format
    changes take effect for loggers that were already created.

    Args:
        config: Optional configuration. If None, uses INFO level and ``auto`` format.
    """
    log_level = config.log_level if config else "INFO"
    log_format = resolve_log_format(config.log_format if config else "auto")

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers[:] = [_build_handler(log_format, debug=log_level == "DEBUG")]
    package_logger.setLevel(getattr(logging, log_level, logging.INFO))
    package_logger.propagate = False

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if log_format == "console":
        # RichHandler prints its own time column
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors += [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger under the ``droidspec`` logger.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name or LOGGER_NAME)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log entries in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
