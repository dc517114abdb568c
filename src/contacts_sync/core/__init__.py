"""Core CardDAV client functionality shared between CLI and MCP server.

The client itself lives in ``contacts_sync.core.carddav``.
"""

from .async_utils import run_sync

__all__ = ["run_sync"]
