"""Structured logging module.

This module provides utilities for structured logging using structlog and logfire.
"""

from .context import get_log_context, request_log_context
from .setup import configure_logfire, get_logger, setup_logging

__all__ = [
    # Context management
    "get_log_context",
    "request_log_context",
    # Setup
    "configure_logfire",
    "get_logger",
    "setup_logging",
]
