"""Tests for async_utils.run_sync."""

import threading

import pytest

from contacts_sync.core.async_utils import run_sync


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


async def test_run_sync_calls_function():
    """run_sync delegates to a worker thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_runs_off_the_event_loop_thread():
    """The callable runs in a different thread than the caller."""
    caller = threading.get_ident()
    worker = await run_sync(threading.get_ident)
    assert worker != caller


async def test_run_sync_propagates_exceptions():
    """Exceptions raised in the worker surface to the awaiting caller."""

    def _boom():
        raise FileNotFoundError("missing.md")

    with pytest.raises(FileNotFoundError, match="missing.md"):
        await run_sync(_boom)
