"""File handler module: path validation, encoding-aware read/write, file names.

Provides the file I/O infrastructure for the filesystem note store.
All sync functions are pure (no side effects besides file I/O).
"""

import os
import re
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes


# =============================================================================
# Path Validation
# =============================================================================

# Characters that are invalid in file names on at least one common platform.
_INVALID_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|#^\[\]\x00-\x1f]')


def sanitize_filename(name: str) -> str:
    """Turn a display name into a safe file name stem.

    Replaces path separators and other reserved characters with spaces,
    collapses whitespace and strips leading dots.

    Args:
        name: Display name of a contact.

    Returns:
        File name stem (no extension); ``"Unnamed contact"`` when nothing
        usable remains.
    """
    cleaned = _INVALID_FILENAME_CHARS.sub(" ", name)
    cleaned = re.sub(r"\s+", " ", cleaned).strip().lstrip(".").strip()
    return cleaned or "Unnamed contact"


def resolve_in_root(root: Path, relative: str) -> Path:
    """Resolve a store-relative path below *root*.

    Args:
        root: Absolute root directory of the store.
        relative: POSIX-style path relative to the root.

    Returns:
        Resolved absolute path.

    Raises:
        ValueError: If the path is absolute or escapes the root.
    """
    if relative.startswith("/") or Path(relative).is_absolute():
        raise ValueError(f"Path must be relative to the vault: {relative}")
    root_resolved = root.resolve()
    resolved = (root_resolved / relative).resolve()
    if not resolved.is_relative_to(root_resolved):
        raise ValueError(
            f"Path is outside the vault: {resolved} not under {root_resolved}"
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file atomically, creating parent directories.

    The content goes to a temporary sibling first and is moved into place
    with ``os.replace``.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(encoded)
        os.replace(tmp_path, str(path))
    except BaseException:
        # Clean up temp file on any failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)
