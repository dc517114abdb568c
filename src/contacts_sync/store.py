"""Filesystem document store: a folder of Markdown notes with YAML front matter.

Notes look like::

    ---
    name: Ada Lovelace
    email:
    - ada@example.org
    ---
    # Ada Lovelace

Paths handed to and returned from the store are POSIX paths relative to
the vault root.  Blocking I/O runs in worker threads via ``run_sync``.
Front matter reads are served from a cache keyed on file mtime and size,
so steady-state passes do not re-parse unchanged notes.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable
from io import StringIO
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .core.async_utils import run_sync
from .file_handler import read_file_with_encoding, resolve_in_root, write_file
from .ports import FileHandle, ListedFiles

logger = logging.getLogger(__name__)

FM_RE = re.compile(
    r"^---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|$)", re.DOTALL
)


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split note text into ``(yaml_text, body)``.

    ``yaml_text`` is ``None`` when the note has no front matter.
    """
    m = FM_RE.match(content)
    if not m:
        return None, content
    return m.group(1) or "", content[m.end():]


def _round_trip() -> YAML:
    """Fresh round-trip YAML instance, never shared across threads."""
    rt = YAML()
    rt.preserve_quotes = True
    rt.width = 4096
    return rt


def parse_frontmatter(yaml_text: str | None) -> dict[str, Any] | None:
    """Parse front matter YAML; ``None`` if absent or not a mapping.

    The mapping is loaded in round-trip mode, so keys nobody touches are
    dumped back with their original quoting, style and comments.

    Raises:
        YAMLError: If the YAML is malformed.
    """
    if yaml_text is None:
        return None
    data = _round_trip().load(yaml_text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def compose_note(frontmatter: dict[str, Any] | None, body: str) -> str:
    """Join front matter and body back into note text."""
    if not frontmatter:
        return body
    stream = StringIO()
    _round_trip().dump(frontmatter, stream)
    return f"---\n{stream.getvalue()}---\n{body}"


class FileSystemDocumentStore:
    """``DocumentStore`` over a directory tree.

    Args:
        root: Vault root directory.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._cache: dict[str, tuple[tuple[int, int], dict[str, Any] | None]] = {}

    def _abs(self, path: str) -> Path:
        return resolve_in_root(self.root, path)

    # ------------------------------------------------------------------
    # Listing and lookup
    # ------------------------------------------------------------------

    async def list(self, folder: str) -> ListedFiles:
        return await run_sync(self._list_sync, folder)

    def _list_sync(self, folder: str) -> ListedFiles:
        directory = self._abs(folder)
        if not directory.is_dir():
            raise FileNotFoundError(f"Folder not found: {folder}")
        listed = ListedFiles()
        for child in sorted(directory.iterdir()):
            relative = f"{folder}/{child.name}"
            if child.is_dir():
                listed.folders.append(relative)
            elif child.is_file():
                listed.files.append(relative)
        return listed

    async def get_file(self, path: str) -> FileHandle | None:
        exists = await run_sync(self._abs(path).is_file)
        return FileHandle(path) if exists else None

    async def folder_exists(self, path: str) -> bool:
        return await run_sync(self._abs(path).is_dir)

    async def file_exists(self, path: str, case_sensitive: bool = False) -> bool:
        return await run_sync(self._file_exists_sync, path, case_sensitive)

    def _file_exists_sync(self, path: str, case_sensitive: bool) -> bool:
        target = self._abs(path)
        if case_sensitive:
            return target.exists()
        if not target.parent.is_dir():
            return False
        wanted = target.name.lower()
        return any(child.name.lower() == wanted for child in target.parent.iterdir())

    async def create_folder(self, path: str) -> None:
        await run_sync(self._abs(path).mkdir, parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read_frontmatter(self, path: str) -> dict[str, Any] | None:
        """Cached front matter of *path*; ``None`` if it has none.

        Malformed YAML is logged and treated as no front matter.
        """
        return await run_sync(self._read_frontmatter_sync, path)

    def _read_frontmatter_sync(self, path: str) -> dict[str, Any] | None:
        target = self._abs(path)
        stat = target.stat()
        key = (stat.st_mtime_ns, stat.st_size)
        cached = self._cache.get(path)
        if cached is None or cached[0] != key:
            content, _ = read_file_with_encoding(target)
            yaml_text, _ = split_frontmatter(content)
            try:
                frontmatter = parse_frontmatter(yaml_text)
            except YAMLError as exc:
                logger.warning("Invalid front matter in %s: %s", path, exc)
                frontmatter = None
            cached = (key, frontmatter)
            self._cache[path] = cached
        return copy.deepcopy(cached[1])

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def create(self, path: str, body: str) -> FileHandle:
        await run_sync(self._create_sync, path, body)
        return FileHandle(path)

    def _create_sync(self, path: str, body: str) -> None:
        target = self._abs(path)
        if target.exists():
            raise FileExistsError(f"Note already exists: {path}")
        write_file(target, body)

    async def process(self, file: FileHandle, fn: Callable[[str], str]) -> None:
        """Rewrite the body of *file* (front matter excluded) with *fn*."""
        await run_sync(self._process_sync, file.path, fn)

    def _process_sync(self, path: str, fn: Callable[[str], str]) -> None:
        target = self._abs(path)
        content, _ = read_file_with_encoding(target)
        m = FM_RE.match(content)
        head, body = (content[: m.end()], content[m.end():]) if m else ("", content)
        write_file(target, head + fn(body))
        self._cache.pop(path, None)

    async def process_frontmatter(
        self, file: FileHandle, fn: Callable[[dict[str, Any]], None]
    ) -> None:
        """Let *fn* mutate the front matter of *file*, then write it back.

        Raises:
            ValueError: If the existing front matter is malformed.
        """
        await run_sync(self._process_frontmatter_sync, file.path, fn)

    def _process_frontmatter_sync(
        self, path: str, fn: Callable[[dict[str, Any]], None]
    ) -> None:
        target = self._abs(path)
        content, _ = read_file_with_encoding(target)
        yaml_text, body = split_frontmatter(content)
        try:
            frontmatter = parse_frontmatter(yaml_text)
        except YAMLError as exc:
            raise ValueError(f"Invalid front matter in {path}: {exc}") from exc
        if frontmatter is None:
            frontmatter = {}
        fn(frontmatter)
        write_file(target, compose_note(frontmatter, body))
        self._cache.pop(path, None)

    async def rename(self, file: FileHandle, new_path: str) -> FileHandle:
        await run_sync(self._rename_sync, file.path, new_path)
        return FileHandle(new_path)

    def _rename_sync(self, path: str, new_path: str) -> None:
        source = self._abs(path)
        target = self._abs(new_path)
        if not source.is_file():
            raise FileNotFoundError(f"Note not found: {path}")
        case_only = path.lower() == new_path.lower()
        if target.exists() and not case_only:
            raise FileExistsError(f"Note already exists: {new_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)
        self._cache.pop(path, None)
        self._cache.pop(new_path, None)

    async def append(self, file: FileHandle, text: str) -> None:
        await run_sync(self._append_sync, file.path, text)

    def _append_sync(self, path: str, text: str) -> None:
        target = self._abs(path)
        content, _ = read_file_with_encoding(target)
        write_file(target, content + text)
        self._cache.pop(path, None)

    async def open_in_ui(self, file: FileHandle) -> None:
        logger.warning("See %s", self._abs(file.path))
