"""
Run a download coroutine so SIGINT and SIGTERM stop it cleanly.

A signal cancels the task running the coroutine. The cancellation reaches
every in-flight RangeFetcher, which deletes its half-written part, and then
RangeDownloader, which discards the finished parts unless
keep_temp_on_failure is set. Only after that cleanup does the caller see
KeyboardInterrupt.
"""

import asyncio
import signal
import sys
from typing import Any, Callable, Coroutine, List, TypeVar

from rangefetch.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_handlers(
    loop: asyncio.AbstractEventLoop, callback: Callable[[], None]
) -> List[signal.Signals]:
    """Register callback for the shutdown signals; return those installed."""
    if sys.platform == "win32":
        # No loop signal handlers; CTRL+C arrives as KeyboardInterrupt
        return []
    installed = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, callback)
        except (ValueError, RuntimeError):
            # Only the main thread may install handlers
            continue
        installed.append(sig)
    return installed


async def _run_cancellable(coro: Coroutine[Any, Any, T]) -> T:
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    interrupted = asyncio.Event()

    def on_signal() -> None:
        if interrupted.is_set():
            return
        interrupted.set()
        logger.info("Shutdown signal received, discarding partial download")
        if task is not None and not task.done():
            task.cancel()

    installed = _install_handlers(loop, on_signal)
    try:
        return await coro
    except asyncio.CancelledError:
        if not interrupted.is_set():
            raise
        raise KeyboardInterrupt("Download cancelled by signal")
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def run_async_with_shutdown(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run coro to completion on a fresh event loop.

    Raises:
        KeyboardInterrupt: A shutdown signal cancelled the run; part
            cleanup has already happened
        Any exception raised by coro
    """
    return asyncio.run(_run_cancellable(coro))
