"""One-way contact reconciliation engine.

Public API for mirroring CardDAV contacts into Markdown notes with YAML
front matter.

Architecture
------------
Each remote record is paired with the note that embeds it (by remote
URL, under the reserved front-matter key).  A pass then decides per
record whether to create, update or skip it, and moves notes whose
record disappeared remotely into a ``Deleted`` subfolder.  Records are
compared by etag; settings drift since the last pass forces a rewrite.

Modules:

- ``engine``     -- ``SyncEngine``: runs one pass.
- ``state``      -- ``SyncState``: pass memory between runs.
- ``models``     -- ``RemoteRecord``, ``LocalRecord``, ``SyncAction``,
  ``RecordResult``, ``SyncReport``, ``PassResult``.
- ``vcard``      -- vCard parsing into ``Field`` lists.
- ``formatter``  -- fields to front-matter values.
- ``frontmatter``-- note front matter for one record.
- ``names``      -- unique note names.
- ``heading``    -- name heading transitions.
- ``groups``     -- group allow-list filtering.
- ``errors``     -- the persistent error log note.
- ``reporter``   -- notices, text and JSON reports.
- ``runner``     -- wires store, fetcher, engine and state together.

Usage example
-------------
::

    from pathlib import Path
    from contacts_sync.config import load_settings
    from contacts_sync.sync import format_sync_report
    from contacts_sync.sync.runner import run_pass

    settings = load_settings()
    report = await run_pass(settings, Path("~/Notes").expanduser(),
                            Path(".contacts_sync"))
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .errors import ErrorSink
from .heading import HeadingTransition
from .models import (
    LocalRecord,
    PassResult,
    RecordResult,
    RemoteRecord,
    SyncAction,
    SyncReport,
)
from .reporter import (
    format_pass_notice,
    format_sync_report,
    report_to_json,
)
from .state import SyncState

__all__ = [
    "ErrorSink",
    "HeadingTransition",
    "LocalRecord",
    "PassResult",
    "RecordResult",
    "RemoteRecord",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "SyncState",
    "format_pass_notice",
    "format_sync_report",
    "report_to_json",
]
