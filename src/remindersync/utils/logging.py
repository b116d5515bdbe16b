"""Logging configuration and utilities."""

import functools
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

import structlog
import colorlog
from structlog.typing import EventDict, Processor, WrappedLogger

from ..config.settings import get_settings


# Libraries that log every job firing or connection at INFO
NOISY_LOGGERS = ("apscheduler", "aiohttp.access", "sqlalchemy.engine")


def add_service_context(service_name: str, environment: str) -> Processor:
    """Build a processor that stamps every event with the service identity."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Set up logging for the scheduler process.

    Arguments override the ``LOG_`` settings; file logging is enabled only
    when a path is configured.
    """
    settings = get_settings()

    level = (log_level or settings.logging.level).upper()
    format_type = log_format or settings.logging.format
    file_path = log_file or settings.logging.file_path

    # Standard library logging carries structlog output to the handlers
    logging.basicConfig(level=getattr(logging, level))

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service_context(settings.name, settings.environment),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # JSON for deployments, colored key/value output for local runs
    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if file_path:
        setup_file_logging(file_path, level)

    setup_console_logging(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_file_logging(file_path: str, level: str) -> None:
    """Write logs to a size-rotated file next to the signal database."""
    log_file = Path(file_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # 5MB per file, three generations kept
    file_handler = logging.handlers.RotatingFileHandler(
        file_path,
        maxBytes=5 * 1024 * 1024,
        backupCount=3
    )
    file_handler.setLevel(getattr(logging, level.upper()))
    file_handler.setFormatter(logging.Formatter(
        '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
    ))

    logging.getLogger().addHandler(file_handler)


def setup_console_logging(level: str) -> None:
    """Set up colored console logging."""
    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))

    # Skipped and deferred attempts log at INFO, so keep them distinguishable from errors
    console_handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        reset=True,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))

    logging.getLogger().addHandler(console_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a ``logger`` named after the class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)


def _elapsed(start_time: float) -> str:
    return f"{time.monotonic() - start_time:.4f}s"


# Timing decorators; durations are logged at debug level
def log_execution_time(func):
    """Log how long a blocking call took, or that it failed."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__qualname__)
        start_time = time.monotonic()

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error("Call failed", function=func.__qualname__, execution_time=_elapsed(start_time), error=str(e))
            raise

        logger.debug("Call completed", function=func.__qualname__, execution_time=_elapsed(start_time))
        return result

    return wrapper


def log_async_execution_time(func):
    """Async counterpart of :func:`log_execution_time`."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__qualname__)
        start_time = time.monotonic()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error("Call failed", function=func.__qualname__, execution_time=_elapsed(start_time), error=str(e))
            raise

        logger.debug("Call completed", function=func.__qualname__, execution_time=_elapsed(start_time))
        return result

    return wrapper
