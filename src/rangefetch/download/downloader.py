"""
Range downloader with a clean interface.

Provides RangeDownloader, which orchestrates one single-shot run:
    Idle -> Probing -> Planning -> Fetching -> Assembling -> Cleaning -> Done
with Failed reachable from Probing, Planning, Fetching and Assembling.

Clean interface: (url, output path) -> DownloadSummary, or a
RangeFetchBaseError whose `stage` names where the run stopped.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import unquote, urlsplit

import aiohttp

from rangefetch.config import RangeFetchConfig
from rangefetch.download.assembler import Assembler
from rangefetch.download.cleaner import Cleaner
from rangefetch.download.coordinator import FetchCoordinator
from rangefetch.download.fetcher import RangeFetcher
from rangefetch.download.http_client import create_session, probe_size
from rangefetch.download.models import DownloadSummary, PipelineState, RangeSpec
from rangefetch.download.planner import plan_ranges
from rangefetch.download.storage import PartStorage
from rangefetch.errors import ConfigurationError, RangeFetchBaseError
from rangefetch.logging import get_logger, log_exception, log_with_context, set_log_context

logger = get_logger(__name__)


def default_output_path(url: str) -> Path:
    """downloaded_<last path segment of the URL> in the working directory."""
    name = Path(unquote(urlsplit(url).path)).name or "resource"
    return Path(f"downloaded_{name}")


class RangeDownloader:
    """
    Download one resource over thread_count concurrent range requests.

    Usage:
        downloader = RangeDownloader(RangeFetchConfig(thread_count=8))
        summary = await downloader.download(
            "https://example.com/video.mp4", Path("video.mp4")
        )
        print(f"Downloaded {summary.total_size} bytes")

    Session management:
        By default a session sized to thread_count is created for the run
        and closed afterwards. Pass a session to reuse an existing pool; it
        is left open.

    A RangeDownloader instance runs once. Create a new one per download.
    """

    def __init__(
        self,
        config: Optional[RangeFetchConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize RangeDownloader.

        Args:
            config: Download configuration (default: RangeFetchConfig())
            session: Optional aiohttp session (None = create per run)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = (config or RangeFetchConfig()).validate()
        self._session = session
        self.state = PipelineState.IDLE
        self.failed_stage: Optional[PipelineState] = None

    async def download(
        self,
        url: str,
        output_path: Optional[Union[str, Path]] = None,
    ) -> DownloadSummary:
        """
        Run the whole pipeline for one URL.

        Args:
            url: Resource URL
            output_path: Output file (default: config.output_path, then
                derived from the URL)

        Returns:
            DownloadSummary for the completed file

        Raises:
            SizeUnavailableError: Probe failed, before any fetch started
            RangeFetchError: A range could not be fetched; no output written
            AssemblyError: Merge failed; no output left under the final name
            ConfigurationError: Invalid plan inputs or unusable temp directory
            RuntimeError: If this instance already ran
        """
        if self.state != PipelineState.IDLE:
            raise RuntimeError("RangeDownloader runs once; create a new instance")

        output = Path(output_path or self.config.output_path or default_output_path(url))
        storage = PartStorage(self.config.temp_dir, output.name)
        specs: List[RangeSpec] = []
        session = self._session
        owns_session = session is None
        start_time = time.monotonic()

        try:
            if owns_session:
                session = create_session(
                    max_connections=self.config.thread_count,
                    user_agent=self.config.user_agent,
                )

            self._enter(PipelineState.PROBING)
            resource = await probe_size(
                session, url, timeout=self.config.probe_timeout_seconds
            )

            self._enter(PipelineState.PLANNING)
            specs = plan_ranges(resource.total_size, self.config.thread_count)

            self._enter(PipelineState.FETCHING)
            await self._prepare_temp_dir(storage)
            fetcher = RangeFetcher(
                session,
                storage,
                timeout=self.config.timeout_seconds,
                io_chunk_size=self.config.io_chunk_size,
            )
            coordinator = FetchCoordinator(
                fetcher,
                thread_count=self.config.thread_count,
                cancel_on_failure=self.config.cancel_on_failure,
                retry_attempts=self.config.retry_attempts,
                retry_backoff_seconds=self.config.retry_backoff_seconds,
            )
            results = await coordinator.run_all(url, specs)

            self._enter(PipelineState.ASSEMBLING)
            await Assembler(io_chunk_size=self.config.io_chunk_size).assemble(
                results, output
            )

            self._enter(PipelineState.CLEANING)
            try:
                await Cleaner(storage).cleanup(results)
            except OSError as e:
                # The output is complete; leftover parts are only a nuisance
                log_exception(
                    logger,
                    e,
                    "Could not remove part files",
                    level=logging.WARNING,
                    include_traceback=False,
                )

            self._enter(PipelineState.DONE)

        except RangeFetchBaseError as e:
            await self._fail(e, storage, specs)
            raise
        except asyncio.CancelledError:
            self.failed_stage = self.state
            self.state = PipelineState.FAILED
            await self._discard_parts(storage, specs)
            raise
        finally:
            if owns_session and session is not None:
                await session.close()

        summary = DownloadSummary(
            url=url,
            output_path=output,
            total_size=resource.total_size,
            range_count=len(specs),
            duration_ms=round((time.monotonic() - start_time) * 1000, 2),
        )
        log_with_context(
            logger,
            logging.INFO,
            "Download complete",
            url=url,
            output_path=str(output),
            total_size=summary.total_size,
            range_count=summary.range_count,
            duration_ms=summary.duration_ms,
        )
        return summary

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        set_log_context(stage=state.value)
        log_with_context(logger, logging.DEBUG, f"Entering {state.value}")

    async def _prepare_temp_dir(self, storage: PartStorage) -> None:
        try:
            await storage.ensure_dir()
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create temp directory {storage.temp_dir}: {e}", cause=e
            )

    async def _fail(
        self,
        error: RangeFetchBaseError,
        storage: PartStorage,
        specs: List[RangeSpec],
    ) -> None:
        self.failed_stage = self.state
        error.stage = self.state.value
        self.state = PipelineState.FAILED
        set_log_context(stage=PipelineState.FAILED.value)
        log_exception(
            logger,
            error,
            f"Download failed during {error.stage}",
            include_traceback=False,
        )
        await self._discard_parts(storage, specs)

    async def _discard_parts(self, storage: PartStorage, specs: List[RangeSpec]) -> None:
        if self.config.keep_temp_on_failure or not specs:
            return
        try:
            await Cleaner(storage).cleanup_specs(specs)
        except OSError as e:
            log_exception(
                logger,
                e,
                "Could not remove part files after failure",
                level=logging.WARNING,
                include_traceback=False,
            )


async def download_resource(
    url: str,
    output_path: Optional[Union[str, Path]] = None,
    config: Optional[RangeFetchConfig] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> DownloadSummary:
    """Convenience wrapper: one RangeDownloader run."""
    return await RangeDownloader(config, session=session).download(url, output_path)
