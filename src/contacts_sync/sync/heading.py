"""Name heading of a contact note body.

A note body may start with a ``# {name}`` heading line.  Whether it should
is a setting (``is_name_heading``); when the setting or the contact's name
changes between passes the body is patched by one explicit transition:

=============  ============  =============  ==========
previous       current       name changed   transition
=============  ============  =============  ==========
on             off           any            REMOVE
off            on            any            INSERT
on             on            yes            RENAME
on             on            no             NONE
off            off           any            NONE
=============  ============  =============  ==========

Only a first line that is exactly the expected heading is touched, so user
text that merely contains the name is never rewritten.
"""

from __future__ import annotations

from enum import Enum


class HeadingTransition(str, Enum):
    NONE = "none"
    REMOVE = "remove"
    INSERT = "insert"
    RENAME = "rename"


def heading_line(name: str) -> str:
    return f"# {name}"


def plan_heading(
    previous_enabled: bool, current_enabled: bool, name_changed: bool
) -> HeadingTransition:
    """Choose the heading transition for one UPDATE."""
    if previous_enabled and not current_enabled:
        return HeadingTransition.REMOVE
    if not previous_enabled and current_enabled:
        return HeadingTransition.INSERT
    if previous_enabled and current_enabled and name_changed:
        return HeadingTransition.RENAME
    return HeadingTransition.NONE


def _split_first_line(body: str) -> tuple[str, str, str]:
    """``(first_line, newline, rest)`` of *body*."""
    first, sep, rest = body.partition("\n")
    if first.endswith("\r"):
        return first[:-1], "\r\n", rest
    return first, sep, rest


def apply_heading(
    body: str, transition: HeadingTransition, old_name: str, new_name: str
) -> str:
    """Apply *transition* to a note body.

    Args:
        body: Note body (front matter excluded).
        transition: Transition from ``plan_heading``.
        old_name: Name the existing heading was written with.
        new_name: Current display name.

    Returns:
        The patched body; unchanged when the expected heading is not found.
    """
    if transition is HeadingTransition.NONE:
        return body

    first, _, rest = _split_first_line(body)
    headings = {heading_line(old_name), heading_line(new_name)}

    if transition is HeadingTransition.REMOVE:
        if first.rstrip() in headings:
            return rest
        return body

    if transition is HeadingTransition.INSERT:
        if first.rstrip() == heading_line(new_name):
            return body
        if not body:
            return heading_line(new_name)
        return f"{heading_line(new_name)}\n{body}"

    # RENAME
    if first.rstrip() == heading_line(old_name):
        return heading_line(new_name) + body[len(first):]
    return body
