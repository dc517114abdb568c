"""Pass memory persistence.

The engine itself is stateless between passes: it is handed the settings
and records of the previous pass and hands back new ones.  ``SyncState``
keeps that memory in a JSON file per profile (``state_{profile}.json``)
so it survives between CLI runs and server restarts.

The state file holds:

* ``previous_settings`` -- presentation and folder settings of the last
  successful pass.  Credentials are never written.
* ``previous_records`` -- the remote records that pass created, modified
  or skipped.
* ``last_sync`` -- UTC ISO 8601 timestamp of the save.

Writes are atomic: ``save()`` writes a temp file then calls
``os.replace()`` so readers never see partial data.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ..config import Settings
from .models import PassResult, RemoteRecord

logger = logging.getLogger(__name__)

STATE_VERSION = 1

# Never persisted.
_SECRET_FIELDS = ("password",)
_MEMORY_FIELDS = ("previous_settings", "previous_update_data")


def settings_to_dict(settings: Settings) -> dict:
    """Serialisable form of *settings* without secrets or pass memory."""
    data = dataclasses.asdict(settings.snapshot())
    for name in _SECRET_FIELDS + _MEMORY_FIELDS:
        data.pop(name, None)
    return data


def settings_from_dict(data: dict) -> Settings:
    """Rebuild a settings snapshot; unknown keys are ignored."""
    known = {f.name for f in dataclasses.fields(Settings)}
    kwargs = {
        k: v
        for k, v in data.items()
        if k in known and k not in _SECRET_FIELDS + _MEMORY_FIELDS
    }
    return Settings(**kwargs)


class SyncState:
    """Load and save pass memory for a given profile.

    Args:
        state_dir: Directory where state files are stored
            (typically ``.contacts_sync/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, profile_name: str) -> dict:
        """Load the state dict for *profile_name*.

        A missing or unreadable file yields an empty state, which makes
        the next pass behave like a first pass.
        """
        path = self.state_path(profile_name)
        empty = {
            "version": STATE_VERSION,
            "profile": profile_name,
            "last_sync": None,
            "previous_settings": None,
            "previous_records": None,
        }
        if not path.exists():
            return empty
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", path, exc)
            return empty
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: not an object", path)
            return empty
        return {**empty, **data}

    def save(self, profile_name: str, state: dict) -> None:
        """Persist *state* atomically, stamping ``last_sync``.

        Creates ``state_dir`` if it does not exist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        target = self.state_path(profile_name)
        fd, tmp_path = tempfile.mkstemp(dir=str(self._state_dir), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Memory hand-over
    # ------------------------------------------------------------------

    @staticmethod
    def apply(settings: Settings, state: dict) -> Settings:
        """Return *settings* carrying the memory stored in *state*.

        Malformed entries are dropped with a warning so a damaged state
        file degrades to a first pass instead of failing.
        """
        previous_settings = None
        raw_settings = state.get("previous_settings")
        if isinstance(raw_settings, dict):
            try:
                previous_settings = settings_from_dict(raw_settings)
            except TypeError as exc:
                logger.warning("Dropping stored settings: %s", exc)

        previous_records = None
        raw_records = state.get("previous_records")
        if isinstance(raw_records, list):
            try:
                previous_records = [
                    RemoteRecord.model_validate(r) for r in raw_records
                ]
            except ValidationError as exc:
                logger.warning("Dropping stored records: %s", exc)

        return dataclasses.replace(
            settings,
            previous_settings=previous_settings,
            previous_update_data=previous_records,
        )

    @staticmethod
    def record(state: dict, result: PassResult) -> None:
        """Store the memory of *result* in *state* (in place)."""
        state["previous_settings"] = settings_to_dict(result.used_settings)
        state["previous_records"] = [
            r.model_dump() for r in result.update_data
        ]

    def state_path(self, profile_name: str) -> Path:
        """Path of the state file for *profile_name*."""
        return self._state_dir / f"state_{profile_name}.json"
