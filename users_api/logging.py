from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler

import structlog

from users_api.core.config import Settings


def _get_log_level(settings: Settings) -> int:
    return getattr(logging, settings.log_level, logging.INFO)


def _get_log_format(settings: Settings) -> str:
    if settings.log_format:
        return settings.log_format
    return "console" if settings.app_env == "dev" else "json"


def setup_logging(settings: Settings, log_file: str | os.PathLike | None = None) -> None:
    """Configure structlog for JSON structured logging.

    - JSON lines with ISO/UTC timestamp, level, event, and bound fields
    - Includes contextvars so correlation_id and others flow automatically
    - Formats exception info in JSON if exc_info is attached
    - BasicConfig uses "%(message)s" so stdlib/uvicorn messages don't wrap JSON
    """

    # Shared processors
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Formatter for stdlib logging
    if _get_log_format(settings) == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(str(log_file))
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        # daily files, older ones pruned after LOG_RETENTION_DAYS
        handlers.append(
            TimedRotatingFileHandler(
                str(log_file),
                when="midnight",
                backupCount=settings.log_retention_days,
                encoding="utf-8",
                utc=True,
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=_get_log_level(settings),
        handlers=handlers,
        force=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
