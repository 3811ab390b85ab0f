"""
Structured logging module.

Provides JSON file logging and console logging with run/stage/range
context propagated through contextvars.
"""

from rangefetch.logging.context import clear_log_context, get_log_context, set_log_context
from rangefetch.logging.formatters import ConsoleFormatter, JSONFormatter
from rangefetch.logging.setup import generate_run_id, get_logger, setup_logging
from rangefetch.logging.utilities import log_exception, log_with_context, sanitize_url

__all__ = [
    "setup_logging",
    "get_logger",
    "generate_run_id",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "JSONFormatter",
    "ConsoleFormatter",
    "log_with_context",
    "log_exception",
    "sanitize_url",
]
