"""vCard tokenizer: raw record text to a list of ``Field`` objects.

Line unfolding, content-line groups (``item1.TEL``) and parameter lists are
handled by vobject's content-line reader; this module only normalises the
result into the ``Field`` shape the formatter consumes:

- property and parameter names are lower-cased and camel-cased at dashes
  (``X-ABRELATEDNAMES`` -> ``xAbrelatednames``, ``X-SERVICE-TYPE`` ->
  ``xServiceType``);
- ``type`` parameter values are lower-cased, and a parameter with several
  values becomes a list;
- structured properties (``N``, ``ADR``, ``ORG``) are split on unescaped
  ``;`` into lists, every other value is a single unescaped string.
"""

from __future__ import annotations

import io
import logging

import vobject
from vobject.icalendar import stringToTextValues

from ..exceptions import RecordError
from .models import Field

logger = logging.getLogger(__name__)

UNNAMED_CONTACT = "Unnamed contact"

# Component counts of the structured properties (RFC 6350 section 6).
STRUCTURED_KEYS = {"n": 5, "adr": 7, "org": 0}

_SKIPPED_LINES = {"begin", "end"}


def camelcase(name: str) -> str:
    """``X-ADDRESSING-GRAMMAR`` -> ``xAddressingGrammar``."""
    head, *rest = name.lower().replace("_", "-").split("-")
    return head + "".join(part.capitalize() for part in rest)


def parse_record(text: str) -> list[Field]:
    """Tokenize one vCard into fields, in source order.

    Args:
        text: Raw vCard text (``BEGIN:VCARD`` ... ``END:VCARD``).

    Returns:
        One ``Field`` per content line, ``BEGIN``/``END`` excluded.

    Raises:
        RecordError: If a content line cannot be parsed.
    """
    fields: list[Field] = []
    try:
        for line, line_number in vobject.base.getLogicalLines(io.StringIO(text)):
            if not line.strip():
                continue
            name, params, value, group = vobject.base.parseLine(
                line, line_number
            )
            key = camelcase(name)
            if key in _SKIPPED_LINES:
                continue
            fields.append(_build_field(key, params, value, group))
    except vobject.base.ParseError as exc:
        raise RecordError(f"Malformed vCard: {exc}") from exc
    return fields


def _build_field(
    key: str, params: list[list[str]], raw: str, group: str | None
) -> Field:
    collected: dict[str, list[str]] = {}
    for param in params:
        if len(param) == 1:
            # vCard 2.1 bare parameter (``TEL;HOME:``) is a type tag.
            param_name, values = "type", [param[0]]
        else:
            param_name, values = camelcase(param[0]), param[1:]
        if param_name in ("type", "value"):
            values = [v.lower() for v in values]
        collected.setdefault(param_name, []).extend(values)

    meta: dict[str, str | list[str]] = {
        name: values[0] if len(values) == 1 else values
        for name, values in collected.items()
    }
    if group:
        meta["group"] = group

    value_type = meta.get("value")
    return Field(
        key=key,
        meta=meta,
        type=value_type if isinstance(value_type, str) else "text",
        value=_decode_value(key, raw),
    )


def _decode_value(key: str, raw: str) -> str | list[str]:
    if key in STRUCTURED_KEYS:
        parts = stringToTextValues(raw, listSeparator=";")
        size = STRUCTURED_KEYS[key]
        if len(parts) < size:
            parts += [""] * (size - len(parts))
        return parts
    return ",".join(stringToTextValues(raw, listSeparator=","))


# ----------------------------------------------------------------------
# Field lookups
# ----------------------------------------------------------------------


def first_value(fields: list[Field], key: str) -> str | list[str] | None:
    """Value of the first field named *key*, or ``None``."""
    for f in fields:
        if f.key == key:
            return f.value
    return None


def _text(value: str | list[str] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ",".join(value).strip()
    return value.strip()


def get_display_name(fields: list[Field]) -> str:
    """Derive the display name of a contact.

    The formatted name (``FN``) wins.  Without one, a record shown as a
    company (``X-ABShowAs:COMPANY``) takes its organization name; otherwise
    the structured name is composed as ``prefix given middle family
    suffix``.  Backslashes are stripped from the result.
    """
    name = _text(first_value(fields, "fn"))

    if not name and _text(first_value(fields, "xAbshowas")).upper() == "COMPANY":
        org = first_value(fields, "org")
        if isinstance(org, list) and org:
            name = org[0].strip()
        else:
            name = _text(org)

    if not name:
        parts = first_value(fields, "n")
        if isinstance(parts, list):
            family, given, middle, prefix, suffix = (parts + [""] * 5)[:5]
            name = " ".join(
                p.strip()
                for p in (prefix, given, middle, family, suffix)
                if p.strip()
            )

    name = name.replace("\\", "").strip()
    return name or UNNAMED_CONTACT


def record_uid(fields: list[Field]) -> str | None:
    uid = _text(first_value(fields, "uid"))
    return uid or None


def is_group_record(fields: list[Field]) -> bool:
    """True for Apple address-book group markers."""
    kind = _text(first_value(fields, "xAddressbookserverKind"))
    return kind.lower() == "group"


def group_member_uids(fields: list[Field]) -> list[str]:
    """Member UIDs referenced by a group marker, in source order."""
    members = []
    for f in fields:
        if f.key != "xAddressbookserverMember":
            continue
        uid = _text(f.value)
        if uid.lower().startswith("urn:uuid:"):
            uid = uid[len("urn:uuid:"):]
        if uid:
            members.append(uid)
    return members
