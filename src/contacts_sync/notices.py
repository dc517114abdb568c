"""Notice sinks for hosts without a notification area.

``LoggingNoticeSink`` turns notices into log records (CLI).
``CollectingNoticeSink`` keeps them in memory so a tool can return them
(MCP).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class LoggingNotice:
    """A notice whose updates are logged at DEBUG level."""

    def __init__(self, message: str) -> None:
        self.message = message
        self.hidden = False

    def set_message(self, message: str) -> None:
        self.message = message
        logger.debug("%s", message)

    def hide(self) -> None:
        self.hidden = True


class LoggingNoticeSink:
    """Log every notice shown; persistent notices at DEBUG, timed at INFO."""

    def show(self, message: str, duration: float = 0) -> LoggingNotice:
        level = logging.INFO if duration else logging.DEBUG
        for line in message.splitlines():
            logger.log(level, "%s", line)
        return LoggingNotice(message)


@dataclass
class CollectedNotice:
    message: str
    duration: float = 0
    hidden: bool = False
    updates: list[str] = field(default_factory=list)

    @property
    def current(self) -> str:
        return self.updates[-1] if self.updates else self.message

    def set_message(self, message: str) -> None:
        self.updates.append(message)

    def hide(self) -> None:
        self.hidden = True


class CollectingNoticeSink:
    """Keep every notice shown, in order."""

    def __init__(self) -> None:
        self.notices: list[CollectedNotice] = []

    def show(self, message: str, duration: float = 0) -> CollectedNotice:
        notice = CollectedNotice(message=message, duration=duration)
        self.notices.append(notice)
        return notice

    @property
    def messages(self) -> list[str]:
        """Initial message of every notice."""
        return [n.message for n in self.notices]
