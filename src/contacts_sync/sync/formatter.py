"""Field formatting: parsed vCard fields to presentation values.

Each known property maps to one front-matter key:

========================  ====================  ======================
Property                  Front-matter key      Label toggle
========================  ====================  ======================
``tel``                   ``telephone``         ``tel_labels``
``email``                 ``email``             ``email_labels``
``url``                   ``url``               ``url_labels``
``adr``                   ``addresses``         never labelled
``org``                   ``organization``,     --
                          ``departement``
``xAbrelatednames``       ``related names``     ``related_labels``
``impp``                  ``instant message``   service type
``xSocialprofile``        ``social profile``    profile type
``xAbdate``               ``date``              group label, always
``bday``                  ``birthday``          --
========================  ====================  ======================

Any other property passes through under its own key.  Keys listed in the
settings' excluded keys are dropped before any rule applies; ``fn`` is
always dropped because the display name is derived separately.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .models import Field

if TYPE_CHECKING:
    from ..config import Settings

# Type tags that never make a meaningful label.
RESERVED_TYPE_TAGS = frozenset({"cell", "voice", "pref", "internet"})

LABEL_FIELD_KEY = "xablabel"

_LABEL_PREFIX = "_$!<"
_LABEL_SUFFIX = ">!$_"
_LABEL_OVERRIDES = {"iphone": "iPhone"}
_PROTOCOL_PREFIXES = ("xmpp:", "x-apple:")

# property key -> (front-matter key, settings toggle)
_LABELLED_LISTS = {
    "tel": ("telephone", "tel_labels"),
    "email": ("email", "email_labels"),
    "url": ("url", "url_labels"),
}


def _capitalize(label: str) -> str:
    return _LABEL_OVERRIDES.get(label.lower(), label.capitalize())


def _as_list(value: str | list[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _as_text(value: str | list[str]) -> str:
    if isinstance(value, list):
        return ", ".join(v for v in value if v)
    return value


def strip_protocol(value: str) -> str:
    """Remove ``xmpp:`` / ``x-apple:`` prefixes from a handle."""
    for prefix in _PROTOCOL_PREFIXES:
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def group_label(field: Field, fields: list[Field]) -> str | None:
    """Label of the ``X-ABLabel`` sharing *field*'s group, or ``None``.

    Apple's ``_$!<...>!$_`` wrapper is removed.
    """
    group = field.meta.get("group")
    if not group:
        return None
    for sibling in fields:
        if (
            sibling.key.lower() == LABEL_FIELD_KEY
            and sibling.meta.get("group") == group
        ):
            label = (
                _as_text(sibling.value)
                .replace(_LABEL_PREFIX, "")
                .replace(_LABEL_SUFFIX, "")
                .strip()
            )
            return _capitalize(label) if label else None
    return None


def resolve_label(field: Field, fields: list[Field]) -> str | None:
    """Human label of *field*, or ``None``.

    A grouped field (``item1.TEL``) takes its group label.  An ungrouped
    field takes its first type tag outside the reserved set (``cell``,
    ``voice``, ``pref``, ``internet``).
    """
    if field.meta.get("group"):
        return group_label(field, fields)

    for tag in _as_list(field.meta.get("type")):
        if tag and tag.lower() not in RESERVED_TYPE_TAGS:
            return _capitalize(tag)
    return None


def _with_label(value: str, label: str | None) -> str:
    return f"{label}: {value}" if label else value


def _append(frontmatter: dict[str, Any], key: str, value: str) -> None:
    frontmatter.setdefault(key, []).append(value)


def format_field(
    field: Field,
    fields: list[Field],
    settings: Settings,
    frontmatter: dict[str, Any],
    excluded: set[str] | None = None,
) -> None:
    """Fold one field into *frontmatter* in place.

    Args:
        field: The field to format.
        fields: All fields of the record (for label lookup).
        settings: Presentation settings.
        frontmatter: Mapping being built; mutated.
        excluded: Case-folded excluded keys; computed from *settings* when
            omitted.
    """
    if excluded is None:
        excluded = settings.excluded_key_set()
    key = field.key
    if key == "fn" or key.casefold() in excluded:
        return

    if key in _LABELLED_LISTS:
        target, toggle = _LABELLED_LISTS[key]
        label = resolve_label(field, fields) if getattr(settings, toggle) else None
        _append(frontmatter, target, _with_label(_as_text(field.value), label))

    elif key == "adr":
        parts = [p.strip() for p in _as_list(field.value)]
        address = ", ".join(p for p in parts if p)
        if address:
            _append(frontmatter, "addresses", address)

    elif key == "org":
        parts = _as_list(field.value)
        if parts and parts[0].strip():
            frontmatter["organization"] = parts[0].strip()
        if len(parts) > 1 and parts[1].strip():
            frontmatter["departement"] = parts[1].strip()

    elif key == "xAbrelatednames":
        name = _as_text(field.value)
        label = resolve_label(field, fields) if settings.related_labels else None
        link = f"[[{name}|{label}: {name}]]" if label else f"[[{name}]]"
        _append(frontmatter, "related names", link)

    elif key == "impp":
        service = field.meta.get("xServiceType")
        service = _as_list(service)[0] if service else None
        handle = strip_protocol(_as_text(field.value))
        _append(frontmatter, "instant message", _with_label(handle, service))

    elif key == "xSocialprofile":
        tags = [t for t in _as_list(field.meta.get("type")) if t]
        profile = strip_protocol(_as_text(field.value))
        kind = _capitalize(tags[0]) if tags else None
        _append(frontmatter, "social profile", _with_label(profile, kind))

    elif key == "xAbdate":
        label = group_label(field, fields)
        _append(frontmatter, "date", _with_label(_as_text(field.value), label))

    elif key == "bday":
        frontmatter["birthday"] = _as_text(field.value)

    else:
        value = _as_text(field.value)
        current = frontmatter.get(key)
        if current is None:
            frontmatter[key] = value
        elif isinstance(current, list):
            current.append(value)
        else:
            frontmatter[key] = [current, value]
