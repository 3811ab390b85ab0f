"""
Run every range fetch concurrently and gather indexed results.

Default policy is collect-all: every fetch runs to a terminal state, then
the failure with the lowest range index is raised. Two opt-in policies
sit on top of it:
    - cancel_on_failure: cancel sibling fetches after the first failure
    - retry_attempts: re-run only the failed ranges, with exponential backoff
"""

import asyncio
import logging
from typing import Dict, List, Sequence, Tuple

from rangefetch.download.fetcher import RangeFetcher
from rangefetch.download.models import RangeResult, RangeSpec
from rangefetch.errors import RangeFetchError
from rangefetch.logging import get_logger, log_exception, log_with_context

logger = get_logger(__name__)

RoundOutcome = Tuple[Dict[int, RangeResult], Dict[int, RangeFetchError]]


class FetchCoordinator:
    """
    Launch one fetch task per range, bounded by thread_count.

    Usage:
        coordinator = FetchCoordinator(fetcher, thread_count=4)
        results = await coordinator.run_all(url, specs)  # ordered by index
    """

    def __init__(
        self,
        fetcher: RangeFetcher,
        thread_count: int,
        cancel_on_failure: bool = False,
        retry_attempts: int = 0,
        retry_backoff_seconds: float = 1.0,
    ):
        """
        Args:
            fetcher: Fetcher shared by all ranges (stateless per call)
            thread_count: Maximum number of fetches in flight
            cancel_on_failure: Cancel siblings as soon as one fetch fails
            retry_attempts: Extra rounds for failed retryable ranges (0 = none)
            retry_backoff_seconds: Delay before the first extra round, doubled each round
        """
        self._fetcher = fetcher
        self._thread_count = thread_count
        self._cancel_on_failure = cancel_on_failure
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds

    async def run_all(self, url: str, specs: Sequence[RangeSpec]) -> List[RangeResult]:
        """
        Fetch all ranges.

        Args:
            url: Resource URL
            specs: Planned ranges

        Returns:
            RangeResults ordered by spec index, regardless of completion order

        Raises:
            RangeFetchError: The failing range with the lowest index; its
                context lists every failed index of the final round
        """
        results: Dict[int, RangeResult] = {}
        pending = sorted(specs, key=lambda s: s.index)
        semaphore = asyncio.Semaphore(self._thread_count)
        attempt = 0

        log_with_context(
            logger,
            logging.DEBUG,
            "Starting range fetches",
            range_count=len(pending),
            thread_count=self._thread_count,
        )

        while True:
            succeeded, failures = await self._run_round(url, pending, semaphore)
            results.update(succeeded)

            if not failures:
                break

            first = failures[min(failures)]
            first.context["failed_indices"] = sorted(failures)

            all_retryable = all(f.is_retryable for f in failures.values())
            if attempt >= self._retry_attempts or not all_retryable:
                log_with_context(
                    logger,
                    logging.ERROR,
                    "Range fetches failed",
                    failed_indices=sorted(failures),
                    records_succeeded=len(results),
                    records_failed=len(failures),
                )
                raise first

            delay = self._retry_backoff_seconds * (2 ** attempt)
            attempt += 1
            pending = [s for s in pending if s.index not in results]
            log_with_context(
                logger,
                logging.WARNING,
                f"Retrying {len(pending)} range(s) in {delay:.1f}s",
                attempt=attempt,
                retry_count=self._retry_attempts,
                failed_indices=sorted(failures),
            )
            await asyncio.sleep(delay)

        log_with_context(
            logger,
            logging.INFO,
            "All ranges fetched",
            range_count=len(results),
            records_succeeded=len(results),
        )
        return [results[index] for index in sorted(results)]

    async def _bounded_fetch(
        self, url: str, spec: RangeSpec, semaphore: asyncio.Semaphore
    ) -> RangeResult:
        async with semaphore:
            return await self._fetcher.fetch(url, spec)

    async def _run_round(
        self,
        url: str,
        specs: List[RangeSpec],
        semaphore: asyncio.Semaphore,
    ) -> RoundOutcome:
        if self._cancel_on_failure:
            return await self._run_round_cancelling(url, specs, semaphore)

        coros = [self._bounded_fetch(url, spec, semaphore) for spec in specs]
        outcomes = await asyncio.gather(*coros, return_exceptions=True)

        succeeded: Dict[int, RangeResult] = {}
        failures: Dict[int, RangeFetchError] = {}
        for spec, outcome in zip(specs, outcomes):
            if isinstance(outcome, RangeResult):
                succeeded[spec.index] = outcome
            else:
                failures[spec.index] = self._record_failure(spec, outcome)
        return succeeded, failures

    async def _run_round_cancelling(
        self,
        url: str,
        specs: List[RangeSpec],
        semaphore: asyncio.Semaphore,
    ) -> RoundOutcome:
        tasks = {
            asyncio.create_task(self._bounded_fetch(url, spec, semaphore)): spec
            for spec in specs
        }
        try:
            done, not_done = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if not_done:
            log_with_context(
                logger,
                logging.WARNING,
                f"Cancelling {len(not_done)} in-flight range(s) after failure",
            )
            for task in not_done:
                task.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)

        succeeded: Dict[int, RangeResult] = {}
        failures: Dict[int, RangeFetchError] = {}
        for task in done:
            spec = tasks[task]
            exc = task.exception()
            if exc is None:
                succeeded[spec.index] = task.result()
            else:
                failures[spec.index] = self._record_failure(spec, exc)
        return succeeded, failures

    def _record_failure(self, spec: RangeSpec, exc: BaseException) -> RangeFetchError:
        if isinstance(exc, asyncio.CancelledError):
            raise exc
        if not isinstance(exc, RangeFetchError):
            exc = RangeFetchError(spec.index, f"Unexpected error: {exc}", cause=exc)
        log_exception(
            logger,
            exc,
            f"Range {spec.index} failed",
            level=logging.WARNING,
            include_traceback=False,
            range_index=spec.index,
        )
        return exc
