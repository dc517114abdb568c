"""Logging setup for the CLI and the MCP server.

The MCP server speaks JSON-RPC on stdout, so in ``mcp`` mode records go
to a file only.  The CLI logs to stderr and optionally to a file too.
"""

import json
import logging
import os
import sys

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_FILE = "/tmp/contacts-sync.log"

# Libraries that are chatty at INFO/DEBUG.
_NOISY_LOGGERS = ("urllib3", "requests", "charset_normalizer", "vobject")


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object on a single line.

    Keys are ``ts``, ``level``, ``logger`` and ``msg``; a formatted
    traceback is added under ``exc`` when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(debug_format: str, with_name: bool = False) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s",
        datefmt=DATE_FORMAT,
    )


def _resolve_level(mode: str, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    fallback = "WARNING" if mode == "mcp" else "INFO"
    name = os.getenv("LOG_LEVEL", fallback).upper()
    return getattr(logging, name, logging.INFO)


def _file_handler(path: str, debug_format: str) -> logging.Handler:
    handler = logging.FileHandler(path, mode="a")
    handler.setFormatter(_formatter(debug_format, with_name=True))
    return handler


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """Install root handlers for *mode*, replacing any existing ones.

    Args:
        mode: ``"mcp"`` logs to a file only; ``"cli"`` logs to stderr.
        debug: Force DEBUG level whatever ``LOG_LEVEL`` says.
        log_file: In ``mcp`` mode the log file (else ``LOG_FILE`` or
            ``DEFAULT_LOG_FILE``); in ``cli`` mode an extra file.
        debug_format: ``"text"`` or ``"json"``.

    ``LOG_LEVEL`` picks the level when *debug* is off; it defaults to
    WARNING for the MCP server and INFO for the CLI.
    """
    level = _resolve_level(mode, debug)

    if mode == "mcp":
        handlers = [
            _file_handler(log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE), debug_format)
        ]
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(debug_format))
        handlers = [console]
        if log_file:
            handlers.append(_file_handler(log_file, debug_format))

    logging.basicConfig(level=level, handlers=handlers, force=True)

    if level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
