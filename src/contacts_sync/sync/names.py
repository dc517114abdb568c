"""Collision-free note paths."""

from __future__ import annotations

import logging

from ..file_handler import sanitize_filename
from ..ports import DocumentStore

logger = logging.getLogger(__name__)

NOTE_EXTENSION = ".md"


class UniqueNameAllocator:
    """Allocate unoccupied note paths inside one folder.

    The store is probed afresh on every call, so paths claimed earlier in
    the same pass are seen by later allocations.

    Args:
        store: Document store to probe.
        folder: Folder the paths are allocated in.
        reserved: File names without extension that are never handed
            out, compared case-insensitively.
    """

    def __init__(
        self,
        store: DocumentStore,
        folder: str,
        reserved: tuple[str, ...] = (),
    ) -> None:
        self.store = store
        self.folder = folder
        self._reserved = {self.candidate(name).lower() for name in reserved}

    def candidate(self, base_name: str, suffix: int = 0) -> str:
        """``{folder}/{base}.md``, or ``{folder}/{base} {suffix}.md``."""
        stem = base_name if suffix < 2 else f"{base_name} {suffix}"
        return f"{self.folder}/{stem}{NOTE_EXTENSION}"

    async def allocate(self, base_name: str, current_path: str | None = None) -> str:
        """Return the first free path for *base_name*.

        Tries the bare name, then ``"<name> 2"``, ``"<name> 3"`` and so on.
        Existence is checked case-insensitively; reserved names are
        always skipped.

        Args:
            base_name: Desired file name without extension.
            current_path: Path the note already occupies, if any; it counts
                as free for that note.

        Returns:
            Store-relative path of the allocated note.
        """
        base_name = sanitize_filename(base_name)
        suffix = 0
        while True:
            path = self.candidate(base_name, suffix)
            if path.lower() not in self._reserved:
                if current_path is not None and path.lower() == current_path.lower():
                    return path
                if not await self.store.file_exists(path, case_sensitive=False):
                    return path
            suffix = 2 if suffix == 0 else suffix + 1
            logger.debug("Name '%s' taken, trying suffix %d", base_name, suffix)
