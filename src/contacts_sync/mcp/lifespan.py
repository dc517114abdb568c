"""Lifespan management for MCP server startup and shutdown."""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from ..config import Settings, load_settings, validate_settings
from ..config_loader import discover_config_files, load_unified_config
from ..config_schema import to_yaml_fallbacks
from ..core.carddav import fetch_contacts
from ..ports import RemoteFetcher
from ..sync.runner import DEFAULT_PROFILE

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".contacts_sync"


@dataclass
class ServerContext:
    """Everything a tool handler needs to run or inspect a pass.

    Attributes:
        settings: Settings loaded at startup (without pass memory).
        vault_root: Root directory of the notes.
        state_dir: Directory of the pass memory files.
        profile: State file profile name.
        fetcher: Remote record source.
        lock: Held while a pass runs; passes never overlap.
    """

    settings: Settings
    vault_root: Path
    state_dir: Path
    profile: str = DEFAULT_PROFILE
    fetcher: RemoteFetcher = fetch_contacts
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config files if present (as fallback values)
    - Merge all sources via load_settings(): CLI > env vars > .env > YAML > defaults
    - Validate settings and the vault directory
    - Fail fast if either is unusable

    Args:
        config_overrides: Optional dict with values from CLI (username,
            password, server_url, folder, vault, state_dir, profile)

    Yields:
        Dict with 'context' key containing the ServerContext

    Raises:
        RuntimeError: If configuration is invalid or the vault is missing.
    """
    logger.info("MCP server starting...")
    _stderr_print("Contacts sync MCP server starting...")

    overrides = config_overrides or {}
    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        sources = []
        config_files = discover_config_files()
        unified = load_unified_config()
        if config_files:
            sources.append(f"config file: {config_files[0]}")

        settings = load_settings(
            username=overrides.get("username"),
            password=overrides.get("password"),
            server_url=overrides.get("server_url"),
            folder=overrides.get("folder"),
            yaml_fallbacks=to_yaml_fallbacks(unified),
        )
        validate_settings(settings)

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except (ValueError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure CONTACTS_SYNC_USERNAME and CONTACTS_SYNC_PASSWORD are set."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    vault_root = Path(overrides.get("vault") or Path.cwd()).expanduser().resolve()
    if not vault_root.is_dir():
        _stderr_print(f"ERROR: Vault directory not found: {vault_root}")
        raise RuntimeError(f"Vault directory not found: {vault_root}")

    state_dir = Path(overrides.get("state_dir") or vault_root / DEFAULT_STATE_DIR)
    context = ServerContext(
        settings=settings,
        vault_root=vault_root,
        state_dir=state_dir,
        profile=overrides.get("profile") or DEFAULT_PROFILE,
    )
    logger.info("Vault: %s, folder: %s", vault_root, settings.folder)
    _stderr_print(f"  Vault: {vault_root}")
    _stderr_print(f"  Contacts folder: {settings.folder}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"context": context}

    logger.info("MCP server shutting down")
    _stderr_print("Contacts sync MCP server shutting down.")
