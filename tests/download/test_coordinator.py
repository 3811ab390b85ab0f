"""
Tests for FetchCoordinator.

Test coverage:
- Results ordered by index regardless of completion order
- Concurrency bounded by thread_count
- Collect-all failure policy and lowest-index reporting
- Retry rounds for retryable failures only
- Cancel-on-failure policy
"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from rangefetch.download.coordinator import FetchCoordinator
from rangefetch.download.models import RangeResult, RangeSpec
from rangefetch.download.planner import plan_ranges
from rangefetch.errors import ErrorCategory, RangeFetchError

URL = "https://example.com/video.mp4"

# Unpatched reference; retry tests patch asyncio.sleep
_sleep = asyncio.sleep


class FakeFetcher:
    """
    Stand-in for RangeFetcher.

    Args:
        delays: index -> seconds before the fetch completes
        failures: index -> number of calls that fail before one succeeds
            (-1 = always fail)
        category: Category of the raised errors
    """

    def __init__(self, delays=None, failures=None, category=ErrorCategory.TRANSIENT):
        self.delays = delays or {}
        self.failures = dict(failures or {})
        self.category = category
        self.calls = []
        self.completed = []
        self.cancelled = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url, spec):
        self.calls.append(spec.index)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await _sleep(self.delays.get(spec.index, 0.001))
        except asyncio.CancelledError:
            self.cancelled.append(spec.index)
            raise
        finally:
            self.in_flight -= 1

        remaining = self.failures.get(spec.index, 0)
        if remaining != 0:
            self.failures[spec.index] = remaining - 1 if remaining > 0 else -1
            raise RangeFetchError(spec.index, "HTTP error: 503", category=self.category)

        self.completed.append(spec.index)
        return RangeResult(
            spec=spec, path=Path(f"part{spec.index}"), byte_count=spec.byte_count
        )


class TestFetchCoordinatorSuccess:
    """Test successful runs."""

    @pytest.mark.asyncio
    async def test_results_ordered_by_index(self):
        """Index 0 finishes last but still comes first."""
        fetcher = FakeFetcher(delays={0: 0.05, 1: 0.03, 2: 0.01, 3: 0.0})
        coordinator = FetchCoordinator(fetcher, thread_count=4)

        results = await coordinator.run_all(URL, plan_ranges(100, 4))

        assert [r.index for r in results] == [0, 1, 2, 3]
        assert fetcher.completed[0] != 0

    @pytest.mark.asyncio
    async def test_accepts_unordered_specs(self):
        specs = list(reversed(plan_ranges(100, 4)))
        coordinator = FetchCoordinator(FakeFetcher(), thread_count=4)

        results = await coordinator.run_all(URL, specs)

        assert [r.index for r in results] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_all_ranges_in_flight_together(self):
        fetcher = FakeFetcher(delays={i: 0.02 for i in range(4)})
        coordinator = FetchCoordinator(fetcher, thread_count=4)

        await coordinator.run_all(URL, plan_ranges(100, 4))

        assert fetcher.max_in_flight == 4

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        fetcher = FakeFetcher(delays={i: 0.01 for i in range(8)})
        coordinator = FetchCoordinator(fetcher, thread_count=2)

        results = await coordinator.run_all(URL, plan_ranges(100, 8))

        assert len(results) == 8
        assert fetcher.max_in_flight <= 2


class TestFetchCoordinatorFailures:
    """Test failure policies."""

    @pytest.mark.asyncio
    async def test_failure_waits_for_siblings(self):
        """Range 2 of 4 fails; the others still run to completion."""
        fetcher = FakeFetcher(
            delays={0: 0.03, 1: 0.03, 2: 0.0, 3: 0.03}, failures={2: -1}
        )
        coordinator = FetchCoordinator(fetcher, thread_count=4)

        with pytest.raises(RangeFetchError) as exc_info:
            await coordinator.run_all(URL, plan_ranges(100, 4))

        assert exc_info.value.index == 2
        assert exc_info.value.context["failed_indices"] == [2]
        assert sorted(fetcher.completed) == [0, 1, 3]
        assert fetcher.cancelled == []

    @pytest.mark.asyncio
    async def test_lowest_index_reported(self):
        fetcher = FakeFetcher(
            delays={3: 0.0, 1: 0.02}, failures={1: -1, 3: -1}
        )
        coordinator = FetchCoordinator(fetcher, thread_count=4)

        with pytest.raises(RangeFetchError) as exc_info:
            await coordinator.run_all(URL, plan_ranges(100, 4))

        assert exc_info.value.index == 1
        assert exc_info.value.context["failed_indices"] == [1, 3]

    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped(self):
        class BrokenFetcher(FakeFetcher):
            async def fetch(self, url, spec):
                if spec.index == 1:
                    raise ValueError("boom")
                return await super().fetch(url, spec)

        coordinator = FetchCoordinator(BrokenFetcher(), thread_count=2)

        with pytest.raises(RangeFetchError, match="Unexpected error: boom") as exc_info:
            await coordinator.run_all(URL, plan_ranges(10, 2))

        assert exc_info.value.index == 1
        assert isinstance(exc_info.value.cause, ValueError)

    @pytest.mark.asyncio
    async def test_cancel_on_failure_cancels_siblings(self):
        fetcher = FakeFetcher(
            delays={0: 5.0, 1: 0.0, 2: 5.0, 3: 5.0}, failures={1: -1}
        )
        coordinator = FetchCoordinator(fetcher, thread_count=4, cancel_on_failure=True)

        with pytest.raises(RangeFetchError) as exc_info:
            await asyncio.wait_for(coordinator.run_all(URL, plan_ranges(100, 4)), 2.0)

        assert exc_info.value.index == 1
        assert sorted(fetcher.cancelled) == [0, 2, 3]
        assert fetcher.completed == []


class TestFetchCoordinatorRetries:
    """Test retry rounds."""

    @pytest.mark.asyncio
    async def test_retries_only_failed_ranges(self):
        fetcher = FakeFetcher(failures={2: 1})
        coordinator = FetchCoordinator(
            fetcher, thread_count=4, retry_attempts=2, retry_backoff_seconds=0.5
        )

        with patch("rangefetch.download.coordinator.asyncio.sleep") as mock_sleep:
            results = await coordinator.run_all(URL, plan_ranges(100, 4))

        assert [r.index for r in results] == [0, 1, 2, 3]
        assert sorted(fetcher.calls) == [0, 1, 2, 2, 3]
        mock_sleep.assert_called_once_with(0.5)

    @pytest.mark.asyncio
    async def test_exponential_backoff_then_gives_up(self):
        fetcher = FakeFetcher(failures={0: -1})
        coordinator = FetchCoordinator(
            fetcher, thread_count=2, retry_attempts=2, retry_backoff_seconds=1.0
        )

        with patch("rangefetch.download.coordinator.asyncio.sleep") as mock_sleep:
            with pytest.raises(RangeFetchError) as exc_info:
                await coordinator.run_all(URL, plan_ranges(10, 2))

        assert exc_info.value.index == 0
        assert fetcher.calls.count(0) == 3
        assert fetcher.calls.count(1) == 1
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self):
        fetcher = FakeFetcher(failures={1: 1}, category=ErrorCategory.PERMANENT)
        coordinator = FetchCoordinator(fetcher, thread_count=2, retry_attempts=3)

        with pytest.raises(RangeFetchError) as exc_info:
            await coordinator.run_all(URL, plan_ranges(10, 2))

        assert exc_info.value.index == 1
        assert fetcher.calls.count(1) == 1

    @pytest.mark.asyncio
    async def test_no_retries_by_default(self):
        fetcher = FakeFetcher(failures={0: 1})
        coordinator = FetchCoordinator(fetcher, thread_count=1)

        with pytest.raises(RangeFetchError):
            await coordinator.run_all(URL, [RangeSpec(0, 0, 9)])

        assert fetcher.calls == [0]
