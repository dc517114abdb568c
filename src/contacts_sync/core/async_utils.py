"""Async utilities for bridging blocking file and HTTP calls to async code."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wrap blocking filesystem and CardDAV calls made from the
    reconciliation engine and the MCP tool handlers.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        client = CardDAVClient(server_url, username, password)
        records = await run_sync(client.fetch_contacts)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
