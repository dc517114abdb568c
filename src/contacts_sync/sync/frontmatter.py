"""Front-matter construction for contact notes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import RecordError
from .formatter import format_field
from .models import Field, RemoteRecord
from .vcard import get_display_name, parse_record

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

# Front-matter key holding the serialised RemoteRecord of a note.
RESERVED_KEY = "remoteVCard"


def build_frontmatter(
    fields: list[Field], display_name: str, settings: Settings
) -> dict[str, Any]:
    """Fold *fields* into an ordered front-matter mapping.

    The mapping starts with ``name``; other keys follow in order of first
    occurrence in *fields*, multi-valued keys in source order.  The
    reserved key is not included.
    """
    excluded = settings.excluded_key_set()
    frontmatter: dict[str, Any] = {"name": display_name}
    for field in fields:
        format_field(field, fields, settings, frontmatter, excluded)
    return frontmatter


def render_record(
    record: RemoteRecord, settings: Settings
) -> tuple[str, dict[str, Any]]:
    """Parse *record* and build its display name and front matter."""
    fields = parse_record(record.data)
    name = get_display_name(fields)
    return name, build_frontmatter(fields, name, settings)


def stored_record(frontmatter: dict[str, Any] | None) -> RemoteRecord | None:
    """The RemoteRecord embedded in *frontmatter*, or ``None``.

    Raises:
        RecordError: If the reserved key is present but unreadable.
    """
    if not frontmatter or RESERVED_KEY not in frontmatter:
        return None
    try:
        return RemoteRecord.from_stored(frontmatter[RESERVED_KEY])
    except ValueError as exc:
        raise RecordError(f"Unreadable {RESERVED_KEY} value: {exc}") from exc
