"""The durable Errors note.

``ErrorSink`` appends failure reports to an ``Errors`` note in the
destination folder and brings it to the user's attention.  Reporting never
raises: a failure while reporting is logged and dropped so it cannot mask
the original error.

The exception taxonomy (``contacts_sync.exceptions``) is re-exported here.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..exceptions import (
    FetchError,
    RecordError,
    SettingsValidationError,
    SyncError,
)
from ..ports import DocumentStore, FileHandle

logger = logging.getLogger(__name__)

ERRORS_NOTE_NAME = "Errors"

__all__ = [
    "ERRORS_NOTE_NAME",
    "ErrorSink",
    "FetchError",
    "RecordError",
    "SettingsValidationError",
    "SyncError",
    "format_error_section",
]


def format_error_section(
    heading: str, error: BaseException, context: Any = None
) -> str:
    """Render one Markdown error report.

    Args:
        heading: Section heading (what was being attempted).
        error: The exception raised.
        context: Optional JSON-serialisable data about the failure.

    Returns:
        Markdown text ending in a newline.
    """
    text = f"## {heading}\n### Error message\n\n{error}\n"
    if context is not None:
        data = json.dumps(context, default=_json_default, ensure_ascii=False)
        text += f"### Data\n\n```json\n{data}\n```\n"
    return text


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return str(obj)


class ErrorSink:
    """Append error reports to the ``Errors`` note of a folder.

    Args:
        store: Document store holding the destination folder.
        folder: Destination folder; the note is ``{folder}/Errors.md``.
    """

    def __init__(self, store: DocumentStore, folder: str) -> None:
        self.store = store
        self.folder = folder
        self._file: FileHandle | None = None

    @property
    def path(self) -> str:
        return f"{self.folder}/{ERRORS_NOTE_NAME}.md"

    async def report(
        self, heading: str, error: BaseException, context: Any = None
    ) -> None:
        """Log *error*, append it to the Errors note and open the note.

        Never raises.
        """
        logger.error("%s: %s", heading, error)
        try:
            file = await self._get_create_file()
            await self.store.append(
                file, format_error_section(heading, error, context)
            )
            await self.store.open_in_ui(file)
        except Exception:
            logger.exception(
                "Could not write error report to %s", self.path
            )

    async def _get_create_file(self) -> FileHandle:
        if self._file is not None:
            return self._file
        file = await self.store.get_file(self.path)
        if file is None:
            file = await self.store.create(self.path, "")
        self._file = file
        return file
