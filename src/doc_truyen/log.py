"""Structured logging setup shared by the CLI, the API server and tests."""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

_LEVELS = {-1: logging.WARNING, 0: logging.INFO, 1: logging.DEBUG}

# Third-party loggers that drown out task events at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")


def _formatter(renderer: structlog.types.Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(
    verbosity: int = 0,
    log_file: Optional[Path] = None,
    json_console: bool = False,
) -> None:
    """Route structlog events through stdlib logging.

    Args:
        verbosity: -1=quiet (WARNING), 0=normal (INFO), 1=verbose (DEBUG)
        log_file: Optional path that receives every event as a JSON line
        json_console: Render stderr output as JSON instead of colored text
    """
    level = _LEVELS.get(verbosity, logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_renderer = (
        structlog.processors.JSONRenderer()
        if json_console
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_formatter(console_renderer))
    console_handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(logging.DEBUG if log_file else level)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_file_context(file_id: Optional[str]) -> None:
    """Attach the active file id to every event logged from this context."""
    if file_id is None:
        structlog.contextvars.unbind_contextvars("file_id")
    else:
        structlog.contextvars.bind_contextvars(file_id=file_id)
