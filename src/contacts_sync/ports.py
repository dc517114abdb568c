"""Capability interfaces the reconciliation engine depends on.

The engine never touches a concrete host.  It talks to three narrow
ports, injected at construction time:

- ``DocumentStore`` -- the note folder (list, create, read front matter,
  rewrite body/front matter, rename, append, open).
- ``RemoteFetcher`` -- one coroutine returning the remote records.
- ``NoticeSink`` -- transient user-facing status messages.

``FileSystemDocumentStore`` (``contacts_sync.store``) and the notice sinks
in ``contacts_sync.notices`` are the bundled adapters.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .sync.models import RemoteRecord


@dataclass(frozen=True)
class FileHandle:
    """Reference to one note inside a ``DocumentStore``.

    Attributes:
        path: Store-relative POSIX path, e.g. ``"Contacts/Ada Lovelace.md"``.
    """

    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def basename(self) -> str:
        """File name without the ``.md`` extension."""
        name = self.name
        return name[:-3] if name.endswith(".md") else name


@dataclass
class ListedFiles:
    """Direct children of a folder, as store-relative paths."""

    files: list[str] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)


class DocumentStore(Protocol):
    async def list(self, folder: str) -> ListedFiles: ...

    async def create(self, path: str, body: str) -> FileHandle: ...

    async def get_file(self, path: str) -> FileHandle | None: ...

    async def read_frontmatter(self, path: str) -> dict[str, Any] | None: ...

    async def process(
        self, file: FileHandle, fn: Callable[[str], str]
    ) -> None: ...

    async def process_frontmatter(
        self, file: FileHandle, fn: Callable[[dict[str, Any]], None]
    ) -> None: ...

    async def rename(self, file: FileHandle, new_path: str) -> FileHandle: ...

    async def create_folder(self, path: str) -> None: ...

    async def folder_exists(self, path: str) -> bool: ...

    async def file_exists(
        self, path: str, case_sensitive: bool = False
    ) -> bool: ...

    async def append(self, file: FileHandle, text: str) -> None: ...

    async def open_in_ui(self, file: FileHandle) -> None: ...


class Notice(Protocol):
    def set_message(self, message: str) -> None: ...

    def hide(self) -> None: ...


class NoticeSink(Protocol):
    def show(self, message: str, duration: float = 0) -> Notice:
        """Show *message*; ``duration`` in seconds, ``0`` keeps it until hidden."""
        ...


RemoteFetcher = Callable[[str, str, str], Awaitable[list["RemoteRecord"]]]
"""``fetch(username, password, server_url) -> list[RemoteRecord]``."""
