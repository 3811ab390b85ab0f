"""Logging utility functions."""

import logging
from typing import Any
from urllib.parse import urlsplit, urlunsplit


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (url, range_index, duration_ms, etc.)

    Example:
        log_with_context(
            logger, logging.INFO, "Range complete",
            range_index=spec.index,
            bytes_written=written,
        )
    """
    logger.log(level, msg, extra=kwargs)


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from RangeFetchBaseError subclasses.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        error_category = cat.value if hasattr(cat, "value") else str(cat)
        kwargs["error_category"] = error_category

    error_msg = str(exc)
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."
    kwargs["error_message"] = error_msg

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=kwargs)
    else:
        logger.log(level, msg, extra=kwargs)


def sanitize_url(url: str) -> str:
    """
    Strip credentials and the query string from a URL for logging.

    Signed download links usually carry their token in the query string;
    the scheme, host and path are kept for debugging.

    Args:
        url: URL that may contain sensitive parts

    Returns:
        URL without userinfo and query
    """
    if not url:
        return url

    try:
        parts = urlsplit(url)
    except ValueError:
        return url.split("?", 1)[0].split("#", 1)[0]

    try:
        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
    except ValueError:
        # Port out of range or not numeric; keep the raw host:port text
        netloc = parts.netloc.rpartition("@")[2]
    query = "[REDACTED]" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, parts.path, query, ""))
