"""
Logging Configuration for the BSF Farm Data Platform

Routes structlog events and stdlib records (SQLAlchemy, drivers) through one
stderr handler, rendered as JSON lines or as coloured console output. Stdout
is left to command output such as DDL scripts and load results.
"""

import logging
import sys
from typing import List, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter
from structlog.typing import Processor

from bsf_farm.config.settings import Settings, get_settings

# Driver loggers that are chatty below INFO
QUIET_LOGGERS = ("aiosqlite", "asyncio")


def _resolve_level(settings: Settings, log_level: Optional[str]) -> int:
    """Explicit override first, then DEBUG mode, then LOG_LEVEL"""
    if log_level:
        name = log_level
    elif settings.debug:
        name = "DEBUG"
    else:
        name = settings.monitoring.log_level
    return getattr(logging, name.upper(), logging.INFO)


def _shared_processors() -> List[Processor]:
    """Processors applied to structlog events and foreign stdlib records alike"""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override renderer ("json" or "text")
    """
    settings = get_settings()
    numeric_level = _resolve_level(settings, log_level)
    fmt = log_format or settings.monitoring.log_format
    shared = _shared_processors()

    structlog.configure(
        processors=shared + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))

    structlog.get_logger(__name__).debug(
        "Logging configured",
        app=settings.app_name,
        version=settings.version,
        environment=settings.app_env,
        level=logging.getLevelName(numeric_level),
        format=fmt,
    )
