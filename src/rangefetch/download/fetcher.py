"""
Fetch one byte range into its part file.

One RangeFetcher.fetch() call runs per range; concurrency is the
coordinator's business.
"""

import asyncio
import logging
import time

import aiohttp

from rangefetch.config import DEFAULT_IO_CHUNK_SIZE
from rangefetch.download.http_client import IDENTITY_ENCODING
from rangefetch.download.models import RangeResult, RangeSpec
from rangefetch.download.storage import PartStorage
from rangefetch.errors import (
    ErrorCategory,
    RangeFetchError,
    classify_http_status,
)
from rangefetch.logging import get_logger, log_with_context, set_log_context

logger = get_logger(__name__)

HTTP_PARTIAL_CONTENT = 206


class RangeFetcher:
    """
    Download exactly [spec.start, spec.end] with a Range request.

    The response body is streamed to the part file for spec.index. The
    fetcher does not retry; any failure is raised as RangeFetchError with
    the range index, and the partial part file is removed.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        storage: PartStorage,
        timeout: float = 300.0,
        io_chunk_size: int = DEFAULT_IO_CHUNK_SIZE,
    ):
        self._session = session
        self._storage = storage
        self._timeout = timeout
        self._io_chunk_size = io_chunk_size

    async def fetch(self, url: str, spec: RangeSpec) -> RangeResult:
        """
        Fetch one range.

        Args:
            url: Resource URL
            spec: Range to fetch

        Returns:
            RangeResult pointing at the completed part file

        Raises:
            RangeFetchError: Connection failure, timeout, status other
                than 206, a Content-Range for another window, or a body
                whose length differs from the range
        """
        set_log_context(range_index=spec.index)
        path = self._storage.part_path(spec)

        if spec.is_empty:
            # Nothing to request; an empty part keeps assembly uniform
            try:
                async with self._storage.open_write(spec):
                    pass
            except OSError as e:
                raise RangeFetchError(spec.index, f"Cannot create part file: {e}", cause=e)
            log_with_context(
                logger, logging.DEBUG, "Empty range, nothing to fetch", part_path=str(path)
            )
            return RangeResult(spec=spec, path=path, byte_count=0)

        start_time = time.monotonic()
        try:
            bytes_written = await self._download(url, spec)
        except RangeFetchError:
            await self._storage.delete(path)
            raise
        except asyncio.CancelledError:
            await self._storage.delete(path)
            raise
        except asyncio.TimeoutError as e:
            await self._storage.delete(path)
            raise RangeFetchError(
                spec.index,
                f"Timed out after {self._timeout}s",
                cause=e,
                category=ErrorCategory.TRANSIENT,
            )
        except aiohttp.ClientError as e:
            await self._storage.delete(path)
            raise RangeFetchError(spec.index, f"Connection error: {e}", cause=e)
        except OSError as e:
            await self._storage.delete(path)
            raise RangeFetchError(spec.index, f"Part file write failed: {e}", cause=e)

        duration_ms = (time.monotonic() - start_time) * 1000
        log_with_context(
            logger,
            logging.INFO,
            f"Finished part {spec.index}",
            range_start=spec.start,
            range_end=spec.end,
            bytes_written=bytes_written,
            duration_ms=round(duration_ms, 2),
        )
        return RangeResult(spec=spec, path=path, byte_count=bytes_written)

    async def _download(self, url: str, spec: RangeSpec) -> int:
        headers = {"Range": spec.header_value, **IDENTITY_ENCODING}

        async with self._session.get(
            url,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        ) as response:
            if response.status != HTTP_PARTIAL_CONTENT:
                if 200 <= response.status < 300:
                    # Server ignored the Range header; retrying will not help
                    message = (
                        f"Server answered HTTP {response.status} instead of "
                        f"{HTTP_PARTIAL_CONTENT}; byte ranges not honored"
                    )
                    category = ErrorCategory.PERMANENT
                else:
                    message = f"HTTP error: {response.status}"
                    category = classify_http_status(response.status)
                raise RangeFetchError(
                    spec.index,
                    message,
                    category=category,
                    status_code=response.status,
                )

            content_range = response.headers.get("Content-Range")
            if content_range and not content_range.startswith(
                f"bytes {spec.start}-{spec.end}/"
            ):
                raise RangeFetchError(
                    spec.index,
                    f"Content-Range {content_range!r} does not match requested "
                    f"bytes {spec.start}-{spec.end}",
                    category=ErrorCategory.PERMANENT,
                    status_code=response.status,
                )

            log_with_context(
                logger,
                logging.DEBUG,
                "Range response received",
                url=url,
                http_status=response.status,
                range_start=spec.start,
                range_end=spec.end,
            )

            bytes_written = 0
            async with self._storage.open_write(spec) as f:
                async for chunk in response.content.iter_chunked(self._io_chunk_size):
                    await f.write(chunk)
                    bytes_written += len(chunk)

        if bytes_written != spec.byte_count:
            raise RangeFetchError(
                spec.index,
                f"Received {bytes_written} bytes, expected {spec.byte_count}",
                category=ErrorCategory.TRANSIENT,
            )
        return bytes_written
