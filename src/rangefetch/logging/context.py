"""Log context propagated through contextvars (safe across asyncio tasks)."""

from contextvars import ContextVar
from typing import Dict, Optional

_run_id: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
_stage: ContextVar[Optional[str]] = ContextVar("stage", default=None)
_range_index: ContextVar[Optional[int]] = ContextVar("range_index", default=None)


def set_log_context(
    run_id: Optional[str] = None,
    stage: Optional[str] = None,
    range_index: Optional[int] = None,
) -> None:
    """
    Set log context variables. Only non-None arguments are applied.

    Tasks created after this call inherit the values; each asyncio task
    gets its own copy, so a fetcher setting range_index does not leak it
    into its siblings.
    """
    if run_id is not None:
        _run_id.set(run_id)
    if stage is not None:
        _stage.set(stage)
    if range_index is not None:
        _range_index.set(range_index)


def get_log_context() -> Dict[str, Optional[object]]:
    """Return the current log context as a dict."""
    return {
        "run_id": _run_id.get(),
        "stage": _stage.get(),
        "range_index": _range_index.get(),
    }


def clear_log_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _stage.set(None)
    _range_index.set(None)
