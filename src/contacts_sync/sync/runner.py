"""Run one pass against a vault on disk and keep its memory.

``run_pass`` is the orchestrator shared by the CLI and the MCP server:
it restores the previous pass's memory from the state file, builds the
filesystem store and the engine, runs the pass and stores the new memory.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import Settings
from ..core.carddav import fetch_contacts
from ..notices import LoggingNoticeSink
from ..ports import NoticeSink, RemoteFetcher
from ..store import FileSystemDocumentStore
from .engine import ProgressHook, SyncEngine
from .models import SyncReport
from .state import SyncState

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"


async def run_pass(
    settings: Settings,
    vault_root: Path,
    state_dir: Path,
    rewrite_all: bool = False,
    fetcher: RemoteFetcher = fetch_contacts,
    notices: NoticeSink | None = None,
    profile: str = DEFAULT_PROFILE,
    on_progress: ProgressHook | None = None,
) -> SyncReport:
    """Run one reconciliation pass of *settings.folder* inside *vault_root*.

    Args:
        settings: Settings for this pass; any memory they carry is replaced
            by the one stored for *profile*.
        vault_root: Root directory of the notes.
        state_dir: Directory of the state files.
        rewrite_all: Rewrite every paired note regardless of its etag.
        fetcher: Remote record source.
        notices: Status message sink; defaults to logging.
        profile: State file profile name.
        on_progress: Optional per-record progress hook.

    Returns:
        The pass report.  Memory is only stored when the pass finished
        without a pass-level error, so a failed pass is retried from the
        last good memory.
    """
    state_store = SyncState(state_dir)
    state = state_store.load(profile)
    settings = SyncState.apply(settings, state)

    engine = SyncEngine(
        store=FileSystemDocumentStore(vault_root),
        fetcher=fetcher,
        notices=notices or LoggingNoticeSink(),
        settings=settings,
        on_progress=on_progress,
    )
    result = await engine.update_contacts(rewrite_all=rewrite_all)

    if result.report.error is None:
        SyncState.record(state, result)
        state_store.save(profile, state)
        logger.debug("Saved pass memory to %s", state_store.state_path(profile))
    else:
        logger.warning("Pass failed, keeping previous memory: %s", result.report.error)
    return result.report
