"""structlog setup for processes embedding the retrieval engine.

The engine itself only acquires loggers with ``structlog.get_logger``; the
host decides the rendering by calling ``configure_logging`` once, usually
with the values of ``RetrievalConfig``.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

from .config import RetrievalConfig

# Operations slower than this are logged at warning level.
SLOW_OPERATION_MS = 1000.0

_perf_logger = structlog.get_logger("performance")


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Route structlog through stdlib logging on stdout.

    ``log_format`` is ``json`` or ``console``; ``service_name`` is bound to
    every line through contextvars.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def configure_from_config(service_name: str, config: Optional[RetrievalConfig] = None) -> None:
    """``configure_logging`` with the level and format from ``HR_*`` settings."""
    if config is None:
        config = RetrievalConfig()
    configure_logging(service_name, config.log_level, config.log_format)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log timing for a search step; slow steps are logged as warnings."""
    duration_ms = round(duration_ms, 2)
    if duration_ms >= SLOW_OPERATION_MS:
        _perf_logger.warning("Slow operation", operation=operation, duration_ms=duration_ms, **kwargs)
        return
    _perf_logger.info(
        f"Operation {operation} completed",
        operation=operation,
        duration_ms=duration_ms,
        **kwargs
    )
