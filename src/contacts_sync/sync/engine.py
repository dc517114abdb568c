"""Reconciliation engine: one full contacts synchronisation pass.

The ``SyncEngine`` ties together the fetcher, the group filter, the
front-matter builder, the name allocator and the error sink into a pass.
It:

1. Detects settings drift against the previous pass and forces a full
   rewrite when presentation settings changed.
2. Validates settings and ensures the destination folder exists.
3. Fetches the remote records and applies the group allow-list.
4. Loads the contact notes of the folder (notes carrying the reserved key).
5. Pairs remote and local records by URL and classifies each one:
   CREATE (no local note), SKIP (same etag) or UPDATE (etag changed or
   rewrite-all).
6. Moves notes whose record disappeared remotely to ``Deleted/``.
7. Reports the tally and returns the memory for the next pass.

Error handling is per record: a single failure is written to the Errors
note and the pass continues.  A failure outside the record loop (invalid
settings, fetch, folder setup) ends the pass, is reported the same way,
and the partial result is still returned.

Passes must not overlap: callers run at most one ``update_contacts`` per
folder at a time.  Records are processed strictly one after another, which
the name allocator and the rename-then-merge sequence of UPDATE rely on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from ..config import Settings, settings_changed, validate_settings
from ..exceptions import RecordError
from ..ports import DocumentStore, FileHandle, Notice, NoticeSink, RemoteFetcher
from .errors import ERRORS_NOTE_NAME, ErrorSink
from .frontmatter import RESERVED_KEY, render_record, stored_record
from .groups import filter_by_groups
from .heading import HeadingTransition, apply_heading, heading_line, plan_heading
from .models import (
    LocalRecord,
    PassResult,
    RecordResult,
    RemoteRecord,
    SyncAction,
    SyncReport,
)
from .names import NOTE_EXTENSION, UniqueNameAllocator
from .reporter import NOTICE_TITLE, format_pass_notice

logger = logging.getLogger(__name__)

DELETED_FOLDER = "Deleted"

# Seconds an end-of-pass notice stays visible.
SUMMARY_NOTICE_DURATION = 7

ProgressHook = Callable[[int, int, RemoteRecord, RecordResult | None], None]
"""``hook(index, total, record, result)``; ``result`` is ``None`` before
the record is processed and the ``RecordResult`` after."""


class SyncEngine:
    """Reconcile a remote contact set with a folder of notes.

    Args:
        store: Document store holding the destination folder.
        fetcher: Coroutine function returning the remote records.
        notices: Sink for transient status messages.
        settings: Settings of the next pass, including the memory of the
            previous one.  Only the orchestrator changes them, between
            passes.
        on_progress: Optional hook called before and after each record.
        progress_interval: Seconds between fetch-indicator updates.
    """

    def __init__(
        self,
        store: DocumentStore,
        fetcher: RemoteFetcher,
        notices: NoticeSink,
        settings: Settings,
        on_progress: ProgressHook | None = None,
        progress_interval: float = 0.5,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.notices = notices
        self.settings = settings
        self.on_progress = on_progress
        self.progress_interval = progress_interval

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def update_contacts(self, rewrite_all: bool = False) -> PassResult:
        """Run one reconciliation pass.

        Args:
            rewrite_all: Send every paired record through UPDATE regardless
                of its etag.  Forced on when presentation settings changed
                since the previous pass.

        Returns:
            ``PassResult`` with the records created, modified or skipped
            (the next pass's ``previous_update_data``), the settings
            snapshot used, and the pass report.  Never raises for pass
            failures; they are reported and recorded in the report.
        """
        settings = self.settings
        started_at = datetime.now(timezone.utc).isoformat()
        have_settings_changed = settings_changed(
            settings, settings.previous_settings
        )
        if have_settings_changed:
            logger.info("Settings changed since last pass, rewriting all contacts")
            rewrite_all = True

        errors = ErrorSink(self.store, settings.folder)
        notice = self.notices.show(f"{NOTICE_TITLE}: Updating contacts...", 0)
        results: list[RecordResult] = []
        pass_error: str | None = None

        try:
            validate_settings(settings)
            await self._get_create_folder(settings.folder)
            fetched = await self._fetch(notice)
            remote = filter_by_groups(fetched, settings.groups)
            existing = await self._load_local_records(settings.folder, errors)

            by_url: dict[str, LocalRecord] = {}
            for local in existing:
                if local.record.url in by_url:
                    logger.warning(
                        "Duplicate note for %s: %s (using %s)",
                        local.record.url,
                        local.path,
                        by_url[local.record.url].path,
                    )
                    continue
                by_url[local.record.url] = local
            previous = {
                r.url: r for r in settings.previous_update_data or []
            }
            allocator = UniqueNameAllocator(
                self.store, settings.folder, reserved=(ERRORS_NOTE_NAME,)
            )

            total = len(remote)
            for index, record in enumerate(remote, 1):
                notice.set_message(
                    f"{NOTICE_TITLE}: processing record {index} of {total}"
                )
                self._progress(index, total, record, None)
                result = await self._process_record(
                    record,
                    by_url.get(record.url),
                    previous.get(record.url),
                    rewrite_all,
                    allocator,
                    errors,
                )
                results.append(result)
                self._progress(index, total, record, result)

            results.extend(
                await self._move_deleted_contacts(existing, remote, errors)
            )
        except Exception as exc:
            pass_error = str(exc)
            await errors.report(
                "Error when running update_contacts",
                exc,
                {"options": {"rewrite_all": rewrite_all}},
            )
        finally:
            notice.hide()

        report = SyncReport(
            folder=settings.folder,
            rewrite_all=rewrite_all,
            settings_changed=have_settings_changed,
            results=results,
            error=pass_error,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        self.notices.show(format_pass_notice(report), SUMMARY_NOTICE_DURATION)
        logger.info("%s", report.summary())

        update_data = [
            r.record
            for r in report.created + report.modified + report.skipped
            if r.record is not None
        ]
        return PassResult(
            update_data=update_data,
            used_settings=settings.snapshot(),
            report=report,
        )

    def _progress(
        self,
        index: int,
        total: int,
        record: RemoteRecord,
        result: RecordResult | None,
    ) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(index, total, record, result)
        except Exception:
            logger.exception("Progress hook failed")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def _get_create_folder(self, path: str) -> None:
        if not await self.store.folder_exists(path):
            logger.info("Creating folder %s", path)
            await self.store.create_folder(path)

    async def _fetch(self, notice: Notice) -> list[RemoteRecord]:
        """Await the fetcher, animating *notice* while it runs."""
        settings = self.settings
        task = asyncio.ensure_future(
            self.fetcher(
                settings.username, settings.password, settings.server_url
            )
        )
        tick = 0
        while not task.done():
            await asyncio.wait({task}, timeout=self.progress_interval)
            if not task.done():
                tick += 1
                notice.set_message(
                    f"{NOTICE_TITLE}: Fetching contacts{'.' * (tick % 3 + 1)}"
                )
        records = task.result()
        logger.debug("Fetched %d remote records", len(records))
        return records

    async def _load_local_records(
        self, folder: str, errors: ErrorSink
    ) -> list[LocalRecord]:
        """Contact notes directly inside *folder*.

        Notes without the reserved key are not contacts and are ignored;
        the Errors note is never listed.
        """
        listed = await self.store.list(folder)
        errors_name = f"{ERRORS_NOTE_NAME}{NOTE_EXTENSION}"
        records: list[LocalRecord] = []
        for path in listed.files:
            name = path.rsplit("/", 1)[-1]
            if not name.endswith(NOTE_EXTENSION) or name.lower() == errors_name.lower():
                continue
            frontmatter = await self.store.read_frontmatter(path)
            try:
                record = stored_record(frontmatter)
            except RecordError as exc:
                await errors.report(
                    "Error trying to read contact", exc, {"path": path}
                )
                continue
            if record is None:
                continue
            records.append(
                LocalRecord(path=path, frontmatter=frontmatter, record=record)
            )
        return records

    # ------------------------------------------------------------------
    # Per-record reconciliation
    # ------------------------------------------------------------------

    async def _process_record(
        self,
        record: RemoteRecord,
        local: LocalRecord | None,
        previous: RemoteRecord | None,
        rewrite_all: bool,
        allocator: UniqueNameAllocator,
        errors: ErrorSink,
    ) -> RecordResult:
        action = SyncAction.CREATE if local is None else SyncAction.UPDATE
        try:
            if local is None:
                path = await self._create_contact(record, allocator)
                return RecordResult(
                    action=SyncAction.CREATE, url=record.url, path=path,
                    record=record,
                )
            if not self.needs_update(record, local) and not rewrite_all:
                return RecordResult(
                    action=SyncAction.SKIP, url=record.url, path=local.path,
                    record=record,
                )
            path = await self._update_contact(record, local, previous, allocator)
            return RecordResult(
                action=SyncAction.UPDATE, url=record.url, path=path,
                record=record,
            )
        except Exception as exc:
            await errors.report("Error trying to process contact", exc, record)
            return RecordResult(
                action=action,
                url=record.url,
                path=local.path if local else None,
                success=False,
                error=str(exc),
                record=record,
            )

    @staticmethod
    def needs_update(record: RemoteRecord, local: LocalRecord) -> bool:
        """True iff the remote version differs from the note's version."""
        return record.etag != local.record.etag

    async def _create_contact(
        self, record: RemoteRecord, allocator: UniqueNameAllocator
    ) -> str:
        if not record.data:
            raise RecordError(f"Record {record.url} has no data")
        name, frontmatter = render_record(record, self.settings)
        path = await allocator.allocate(name)
        body = heading_line(name) if self.settings.is_name_heading else ""
        file = await self.store.create(path, body)

        def write(fm: dict[str, Any]) -> None:
            fm.update(frontmatter)
            fm[RESERVED_KEY] = record.to_json()

        await self.store.process_frontmatter(file, write)
        logger.debug("Created %s", path)
        return file.path

    async def _update_contact(
        self,
        record: RemoteRecord,
        local: LocalRecord,
        previous: RemoteRecord | None,
        allocator: UniqueNameAllocator,
    ) -> str:
        settings = self.settings
        name, new_frontmatter = render_record(record, settings)

        file = await self.store.get_file(local.path)
        if file is None:
            raise RecordError(f"{local.path} not found")

        old_name = str(local.frontmatter.get("name") or "")
        name_changed = old_name != name
        if name_changed:
            file = await self._rename(file, name, allocator)

        previous_settings = settings.previous_settings
        previous_heading = (
            previous_settings.is_name_heading if previous_settings else True
        )
        transition = plan_heading(
            previous_heading, settings.is_name_heading, name_changed
        )
        if transition is not HeadingTransition.NONE:
            await self.store.process(
                file,
                lambda body: apply_heading(
                    body, transition, old_name or name, name
                ),
            )

        previous_frontmatter = self._previous_frontmatter(
            previous or local.record, previous_settings or settings
        )

        def merge(fm: dict[str, Any]) -> None:
            for key in previous_frontmatter:
                if key not in new_frontmatter:
                    fm.pop(key, None)
            for key, value in new_frontmatter.items():
                fm[key] = value
            fm[RESERVED_KEY] = record.to_json()

        await self.store.process_frontmatter(file, merge)
        logger.debug("Updated %s", file.path)
        return file.path

    async def _rename(
        self, file: FileHandle, name: str, allocator: UniqueNameAllocator
    ) -> FileHandle:
        new_path = await allocator.allocate(name, current_path=file.path)
        if new_path == file.path:
            return file
        logger.debug("Renaming %s -> %s", file.path, new_path)
        return await self.store.rename(file, new_path)

    @staticmethod
    def _previous_frontmatter(
        record: RemoteRecord, settings: Settings
    ) -> dict[str, Any]:
        """Front matter the previous pass wrote for *record*."""
        try:
            _, frontmatter = render_record(record, settings)
        except RecordError as exc:
            logger.warning(
                "Cannot rebuild previous front matter of %s: %s",
                record.url,
                exc,
            )
            return {}
        return frontmatter

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def _move_deleted_contacts(
        self,
        existing: list[LocalRecord],
        remote: list[RemoteRecord],
        errors: ErrorSink,
    ) -> list[RecordResult]:
        """Move notes whose record is gone remotely into ``Deleted/``."""
        fetched = {r.url for r in remote}
        orphans = [c for c in existing if c.record.url not in fetched]
        if not orphans:
            return []

        deleted_folder = f"{self.settings.folder}/{DELETED_FOLDER}"
        await self._get_create_folder(deleted_folder)
        allocator = UniqueNameAllocator(self.store, deleted_folder)

        results: list[RecordResult] = []
        for contact in orphans:
            try:
                file = await self.store.get_file(contact.path)
                if file is None:
                    raise RecordError(f"{contact.path} not found")
                new_path = await allocator.allocate(file.basename)
                moved = await self.store.rename(file, new_path)
                logger.debug("Moved deleted contact %s -> %s", file.path, moved.path)
                results.append(
                    RecordResult(
                        action=SyncAction.DELETE,
                        url=contact.record.url,
                        path=moved.path,
                        record=contact.record,
                    )
                )
            except Exception as exc:
                await errors.report(
                    "Error trying to move deleted contact",
                    exc,
                    contact.record,
                )
                results.append(
                    RecordResult(
                        action=SyncAction.DELETE,
                        url=contact.record.url,
                        path=contact.path,
                        success=False,
                        error=str(exc),
                        record=contact.record,
                    )
                )
        return results
