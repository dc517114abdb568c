"""Remote group allow-list filtering.

Apple address books store groups as ordinary cards marked
``X-ADDRESSBOOKSERVER-KIND:group`` that list their members as
``X-ADDRESSBOOKSERVER-MEMBER:urn:uuid:<uid>``.  Membership is decided by
exact UID equality, never by searching the raw card text.
"""

from __future__ import annotations

import logging

from ..exceptions import RecordError
from .models import RemoteRecord
from .vcard import group_member_uids, is_group_record, parse_record, record_uid

logger = logging.getLogger(__name__)


def filter_by_groups(
    records: list[RemoteRecord], groups: list[str]
) -> list[RemoteRecord]:
    """Drop group markers and, with an allow-list, non-member contacts.

    Args:
        records: Fetched remote records, contacts and group markers mixed.
        groups: Allowed group UIDs; empty means every contact is kept.

    Returns:
        Contact records in fetch order.  With a non-empty allow-list only
        contacts whose UID is a member of an allowed group remain; an
        allowed group without members leaves nothing.
    """
    allowed = {g.strip() for g in groups if g.strip()}
    contacts: list[tuple[RemoteRecord, str | None]] = []
    members: set[str] = set()

    for record in records:
        try:
            fields = parse_record(record.data)
        except RecordError:
            # Left for the engine, which reports it per record.
            contacts.append((record, None))
            continue
        if is_group_record(fields):
            if record_uid(fields) in allowed:
                members.update(group_member_uids(fields))
            continue
        contacts.append((record, record_uid(fields)))

    if not allowed:
        return [record for record, _ in contacts]

    kept = [record for record, uid in contacts if uid is not None and uid in members]
    logger.debug(
        "Group filter kept %d of %d contacts (%d members)",
        len(kept),
        len(contacts),
        len(members),
    )
    return kept
