"""Centralized logging setup with Logfire integration.

Both hosts call ``setup_logging`` once at start-up: the persistent server from
its module import, the function host on cold start.
"""

import logging
import sys

import logfire
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, Processor, WrappedLogger
from structlog.typing import FilteringBoundLogger

from worldwiki.core.config import Settings, settings

_configured = False


def add_logfire_context(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add Logfire-specific context to log events."""
    if "error" in event_dict and isinstance(event_dict["error"], BaseException):
        event_dict["error_type"] = type(event_dict["error"]).__name__
    if "fallback" in event_dict:
        event_dict["event_type"] = "fallback"

    return event_dict


def configure_logfire(config: Settings = settings) -> None:
    """Configure logfire; nothing leaves the process unless a token is set."""
    token = config.logfire_token.get_secret_value() if config.logfire_token else None
    logfire.configure(
        service_name=config.service_name,
        token=token,
        send_to_logfire="if-token-present",
        console=False,
    )


def setup_logging(config: Settings = settings) -> None:
    """Set up application-wide logging with Logfire and structlog integration.

    Logfire is configured from settings (``LOGFIRE_TOKEN``, ``SERVICE_NAME``).
    This function configures structlog to work seamlessly with Logfire.
    """
    global _configured
    if _configured:
        return

    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors: list[Processor] = [
        # Merge request context from contextvars
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        CallsiteParameterAdder(
            parameters=[
                CallsiteParameter.FILENAME,
                CallsiteParameter.LINENO,
                CallsiteParameter.FUNC_NAME,
            ]
        ),
        add_logfire_context,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        # Logfire processor MUST come before the final renderer
        logfire.StructlogProcessor(),
    ]
    renderer: Processor = (
        structlog.processors.JSONRenderer() if config.log_json else structlog.dev.ConsoleRenderer(colors=True)
    )
    tail: list[Processor] = [structlog.processors.format_exc_info, renderer] if config.log_json else [renderer]

    structlog.configure(
        processors=[*processors, *tail],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # Use PrintLogger to avoid double logging with standard library
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route standard library logs (uvicorn, httpx, openai) through the same processors
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=processors[:-1],  # Exclude the Logfire processor
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    _configured = True


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger instance that's properly configured with Logfire.

    Args:
        name: The name of the logger (usually __name__)

    Returns:
        A configured structlog logger instance
    """
    return structlog.get_logger(name)
