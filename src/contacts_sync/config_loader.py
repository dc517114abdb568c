"""
Hierarchical configuration loader for contacts_sync.

Finds YAML config files by convention, merges them with "project wins"
semantics and expands ``${VAR}`` references from the environment.

Usage:
    from contacts_sync.config_loader import load_unified_config

    unified = load_unified_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty VAR expands to *default*, or to ``""`` without one.
    A ``${`` with no closing brace is left as is.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. Convention-based file discovery
# ---------------------------------------------------------------------------

CONFIG_ENV_VAR = "CONTACTS_SYNC_CONFIG"
CONFIG_DIR_NAME = ".contacts_sync"
CONFIG_FILE_NAME = "config.yml"


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``CONTACTS_SYNC_CONFIG`` env var (explicit single path).
        2. ``.contacts_sync/config.yml`` in CWD (project-level)
        3. ``.contacts_sync/config.yaml`` in CWD (alternate extension)
        4. ``~/.config/contacts_sync/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / CONFIG_DIR_NAME / CONFIG_FILE_NAME)
    candidates.append(cwd / CONFIG_DIR_NAME / "config.yaml")

    candidates.append(
        Path.home() / ".config" / "contacts_sync" / CONFIG_FILE_NAME
    )

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 2a. Config bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# contacts-sync configuration
#
# Credentials can also be set via environment variables or a .env file:
#   CONTACTS_SYNC_USERNAME, CONTACTS_SYNC_PASSWORD
#
# carddav:
#   username: someone@icloud.com
#   password: ${CONTACTS_SYNC_PASSWORD}
#   server_url: https://contacts.icloud.com
#   folder: Contacts
#
# presentation:
#   name_heading: true
#   tel_labels: false
#   email_labels: false
#   url_labels: false
#   related_labels: false
#   address_labels: false
#   groups: []
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the single config file path that should be used.

    The highest-precedence existing file, or the default project-level
    path ``CWD / .contacts_sync / config.yml`` when none exists.  This
    does NOT create the file; use ``ensure_config()`` for that.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def ensure_config(target: Path | None = None) -> Path:
    """Ensure a config file exists, creating a commented starter if needed.

    Args:
        target: Explicit path to create. If ``None``, uses
            ``resolve_config_path()``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)

    return config_path

# ---------------------------------------------------------------------------
# 3. Hierarchical merge
# ---------------------------------------------------------------------------


def _load_yaml(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Merge strategy ("project wins"):
        Files are loaded from lowest precedence to highest.  Each file's
        top-level sections **replace** (not deep-merge) those from earlier
        files.

    Env var interpolation runs after the merge.  Returns an empty dict
    when no config file exists (zero-config).

    Raises:
        yaml.YAMLError: If a config file is not valid YAML.
    """
    paths = discover_config_files()

    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml(path)
        except yaml.YAMLError:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate(merged)


def load_unified_config() -> UnifiedConfig:
    """Discover, merge and validate the config files."""
    return build_config(load_hierarchical_config())
