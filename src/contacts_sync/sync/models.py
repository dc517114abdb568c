"""Pydantic models for the contact reconciliation engine.

Defines the core data contracts used across all sync modules:

- ``RemoteRecord``: One fetched contact (or group) with its version tag.
- ``Field``: One parsed vCard content line.
- ``LocalRecord``: A contact note found in the destination folder.
- ``SyncAction``: Enum of per-record outcomes.
- ``RecordResult``: Outcome of processing one record.
- ``SyncReport``: Aggregate results for a full pass (the run tally).
- ``PassResult``: What a pass hands back to the orchestrator.

Records and results are frozen (immutable) for safety.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from ..config import Settings


class RemoteRecord(BaseModel):
    """A contact as fetched from the CardDAV server.

    Attributes:
        url: Stable remote identity of the record.
        etag: Remote version fingerprint; equal etags mean the same version.
        data: Raw vCard text.
    """

    url: str
    etag: str
    data: str

    model_config = {"frozen": True}

    def to_json(self) -> str:
        """Serialise for the reserved front-matter key."""
        return json.dumps(
            {"url": self.url, "etag": self.etag, "data": self.data},
            ensure_ascii=False,
        )

    @classmethod
    def from_stored(cls, value: Any) -> RemoteRecord:
        """Rebuild a record from a reserved-key value (JSON string or mapping)."""
        if isinstance(value, str):
            value = json.loads(value)
        return cls.model_validate(value)


class Field(BaseModel):
    """One parsed vCard property.

    Attributes:
        key: Camel-cased property name (``tel``, ``xAblabel``...).
        meta: Parameters plus the content-line ``group``; multi-valued
            parameters are lists.
        type: Value type (``text``, ``date``, ``uri``...).
        value: Scalar value, or a list for structured properties.
    """

    key: str
    meta: dict[str, str | list[str]] = {}
    type: str = "text"
    value: str | list[str] = ""

    model_config = {"frozen": True}


class LocalRecord(BaseModel):
    """A contact note in the destination folder.

    Attributes:
        path: Store-relative path of the note.
        frontmatter: Cached front matter of the note.
        record: The remote record embedded under the reserved key.
    """

    path: str
    frontmatter: dict[str, Any]
    record: RemoteRecord


class SyncAction(str, Enum):
    """Possible outcomes for one remote or local record."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    DELETE = "delete"


class RecordResult(BaseModel):
    """Result of processing one record.

    Attributes:
        action: What the engine did (or tried to do).
        url: Remote identity of the record.
        path: Note path after the action, when known.
        success: Whether the action completed.
        error: Error message if the action failed.
        record: The remote record the action was based on.
    """

    action: SyncAction
    url: str
    path: str | None = None
    success: bool = True
    error: str | None = None
    record: RemoteRecord | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report (run tally) for one pass.

    Attributes:
        folder: Destination folder of the pass.
        rewrite_all: Whether every paired record went through UPDATE.
        settings_changed: Whether settings drift forced the rewrite.
        results: Individual record results.
        error: Pass-level failure message, if the pass aborted.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
    """

    folder: str
    rewrite_all: bool = False
    settings_changed: bool = False
    results: list[RecordResult] = []
    error: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _succeeded(self, action: SyncAction) -> list[RecordResult]:
        return [
            r for r in self.results if r.action == action and r.success
        ]

    @property
    def created(self) -> list[RecordResult]:
        return self._succeeded(SyncAction.CREATE)

    @property
    def modified(self) -> list[RecordResult]:
        return self._succeeded(SyncAction.UPDATE)

    @property
    def deleted(self) -> list[RecordResult]:
        return self._succeeded(SyncAction.DELETE)

    @property
    def skipped(self) -> list[RecordResult]:
        return self._succeeded(SyncAction.SKIP)

    @property
    def errors(self) -> list[RecordResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def up_to_date(self) -> bool:
        """True when the pass created, modified and deleted nothing."""
        return not (self.created or self.modified or self.deleted)

    def summary(self) -> str:
        """Format a human-readable summary of the pass.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Contacts sync for '{self.folder}'"
            + (" (rewrite all)" if self.rewrite_all else ""),
            f"  Created:  {len(self.created)}",
            f"  Modified: {len(self.modified)}",
            f"  Deleted:  {len(self.deleted)}",
            f"  Skipped:  {len(self.skipped)}",
            f"  Errors:   {len(self.errors)}",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class PassResult:
    """Memory handed back to the orchestrator after a pass.

    Attributes:
        update_data: Records created, modified or skipped in this pass;
            becomes the next pass's ``previous_update_data``.
        used_settings: Snapshot of the settings the pass ran with;
            becomes the next pass's ``previous_settings``.
        report: The run tally.
    """

    update_data: list[RemoteRecord]
    used_settings: Settings
    report: SyncReport
