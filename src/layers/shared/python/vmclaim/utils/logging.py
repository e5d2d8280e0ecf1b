"""Structured logging with structlog."""

import logging
import sys
from pathlib import Path

import structlog


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
    error_log_file: str | Path | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        fmt: "json" for machine-readable lines, "console" for humans.
        log_file: Also append every record to this file as JSON lines.
        error_log_file: Also append ERROR and above to this file as JSON lines.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
        extra = [structlog.processors.format_exc_info]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        extra = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(shared_processors, *extra, renderer))
    handlers: list[logging.Handler] = [handler]

    # Files are always JSON, whatever the console format
    file_formatter = _formatter(
        shared_processors,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    )
    if log_file:
        handlers.append(_file_handler(log_file, file_formatter))
    if error_log_file:
        handlers.append(_file_handler(error_log_file, file_formatter, logging.ERROR))

    root = logging.getLogger()
    for old in root.handlers:
        if isinstance(old, logging.FileHandler):
            old.close()
    root.handlers = handlers
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _formatter(shared_processors: list, *processors) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *processors,
        ],
    )


def _file_handler(path: str | Path, formatter: logging.Formatter, level: int = logging.NOTSET) -> logging.FileHandler:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler
