"""Exception taxonomy for contact reconciliation.

- ``SettingsValidationError`` -- missing credentials or folder, malformed
  folder path.  Fatal to the pass.
- ``FetchError`` -- remote unreachable or unauthorized.  Fatal to the pass.
- ``RecordError`` -- malformed record data or a note that vanished
  mid-pass.  Caught per record; the pass continues.
"""


class SyncError(Exception):
    """Base class for reconciliation failures."""


class SettingsValidationError(SyncError, ValueError):
    """Settings are incomplete or malformed."""


class FetchError(SyncError):
    """The remote contact set could not be fetched."""


class RecordError(SyncError):
    """A single record could not be processed."""
