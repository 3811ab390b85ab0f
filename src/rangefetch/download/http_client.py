"""
HTTP transport helpers built on aiohttp.

Provides session creation sized to the range count and the HEAD probe
that discovers the resource length.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from rangefetch.download.models import ResourceDescriptor
from rangefetch.errors import SizeUnavailableError
from rangefetch.logging import get_logger, log_with_context

logger = get_logger(__name__)

# Byte offsets must refer to the stored representation, not a re-encoded one
IDENTITY_ENCODING = {"Accept-Encoding": "identity"}


def create_session(
    max_connections: int,
    user_agent: Optional[str] = None,
) -> aiohttp.ClientSession:
    """
    Create an aiohttp session whose pool fits one connection per range.

    Args:
        max_connections: Connection pool size (total and per host)
        user_agent: Optional User-Agent header

    Returns:
        New ClientSession; the caller must close it
    """
    connector = aiohttp.TCPConnector(
        limit=max_connections,
        limit_per_host=max_connections,
    )
    headers = {"User-Agent": user_agent} if user_agent else None
    return aiohttp.ClientSession(connector=connector, headers=headers)


def parse_content_length(value: Optional[str]) -> Optional[int]:
    """Parse a Content-Length header value; None when absent or invalid."""
    if value is None:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    if length < 0:
        return None
    return length


async def probe_size(
    session: aiohttp.ClientSession,
    url: str,
    timeout: float = 30.0,
) -> ResourceDescriptor:
    """
    Discover the resource length with a HEAD request.

    Args:
        session: aiohttp session
        url: Resource URL
        timeout: Request timeout in seconds

    Returns:
        ResourceDescriptor with the reported length

    Raises:
        SizeUnavailableError: Non-success status, missing/invalid
            Content-Length, timeout or connection failure
    """
    try:
        async with session.head(
            url,
            headers=IDENTITY_ENCODING,
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=True,
        ) as response:
            status = response.status
            raw_length = response.headers.get("Content-Length")
    except asyncio.TimeoutError as e:
        raise SizeUnavailableError(
            f"Size probe timed out after {timeout}s", url=url, cause=e
        )
    except aiohttp.ClientError as e:
        raise SizeUnavailableError(f"Size probe failed: {e}", url=url, cause=e)

    if not 200 <= status < 300:
        raise SizeUnavailableError(
            f"Size probe failed with HTTP {status}", url=url, status_code=status
        )

    total_size = parse_content_length(raw_length)
    if total_size is None:
        raise SizeUnavailableError(
            "Server did not report a usable Content-Length"
            + (f" (got {raw_length!r})" if raw_length is not None else ""),
            url=url,
            status_code=status,
        )

    log_with_context(
        logger,
        logging.INFO,
        f"File size: {total_size} bytes",
        url=url,
        http_status=status,
        total_size=total_size,
    )
    return ResourceDescriptor(url=url, total_size=total_size)
