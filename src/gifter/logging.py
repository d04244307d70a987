"""Structured logging for the calculator API, built on structlog over stdlib logging."""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

#: Third-party loggers that are noisy below WARNING (aiosqlite logs every statement at DEBUG).
_QUIET_LOGGERS = ("aiosqlite", "uvicorn.access")


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Route structlog and stdlib records through one handler.

    ``log_format`` is "json" (one object per line) or "console"; when omitted
    it is read from the LOG_FORMAT environment variable, defaulting to console.
    """
    log_format = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)


@contextmanager
def request_context(**fields: str | None) -> Iterator[None]:
    """Attach caller fields (source_id, currency_code, ...) to every event logged inside.

    None values are skipped. The previous context is restored on exit.
    """
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
