"""Sync settings: the values one reconciliation pass runs with.

Reads CardDAV connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CONTACTS_SYNC_USERNAME: CardDAV account name (required for a pass)
    CONTACTS_SYNC_PASSWORD: CardDAV (app-specific) password (required for a pass)
    CONTACTS_SYNC_SERVER_URL: CardDAV server (optional, default: iCloud)
    CONTACTS_SYNC_FOLDER: Destination folder inside the vault (optional)
    CONTACTS_SYNC_NAME_HEADING: Write a ``# Name`` heading (optional, default: true)

``previous_settings`` and ``previous_update_data`` are the engine's memory
of the last pass.  Only the orchestrator sets them, between passes.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
import unicodedata
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import SettingsValidationError

if TYPE_CHECKING:
    from .sync.models import RemoteRecord

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "https://contacts.icloud.com"
DEFAULT_FOLDER = "Contacts"
DEFAULT_EXCLUDED_KEYS = (
    "n photo prodid rev uid version xAbadr xAbLabel xAblabel xAbShowAs "
    "xImagehash xImagetype xSharedPhotoDisplayPref xAddressingGrammar "
    "xAppleSubadministrativearea xAppleSublocality"
)

# Fields whose change since the last pass forces a full rewrite.
PRESENTATION_FIELDS = (
    "folder",
    "is_name_heading",
    "tel_labels",
    "email_labels",
    "url_labels",
    "related_labels",
    "address_labels",
    "excluded_keys",
    "groups",
)


@dataclass
class Settings:
    username: str = ""
    password: str = ""
    folder: str = DEFAULT_FOLDER
    server_url: str = DEFAULT_SERVER_URL
    is_name_heading: bool = True
    tel_labels: bool = False
    email_labels: bool = False
    url_labels: bool = False
    related_labels: bool = False
    address_labels: bool = False
    excluded_keys: str = DEFAULT_EXCLUDED_KEYS
    groups: list[str] = field(default_factory=list)
    previous_settings: Settings | None = None
    previous_update_data: list[RemoteRecord] | None = None

    def snapshot(self) -> Settings:
        """Copy of these settings without the pass memory."""
        return dataclasses.replace(
            self,
            groups=list(self.groups),
            previous_settings=None,
            previous_update_data=None,
        )

    def excluded_key_set(self) -> set[str]:
        """Excluded keys, whitespace-tokenised and case-folded."""
        return {key.casefold() for key in self.excluded_keys.split()}


def normalize_path(path: str) -> str:
    """Normalise a vault-relative folder path.

    Collapses runs of ``/`` and ``\\``, strips leading and trailing
    separators, replaces non-breaking spaces and applies Unicode NFC.
    The vault root normalises to ``"/"``.
    """
    path = re.sub(r"[\\/]+", "/", path)
    path = path.strip("/")
    path = path.replace("\u00a0", " ").replace("\u202f", " ")
    path = unicodedata.normalize("NFC", path)
    return path or "/"


def validate_settings(settings: Settings) -> None:
    """Check that a pass can run with *settings*.

    Raises:
        SettingsValidationError: If credentials or folder are missing, or the
            folder is not in normalised form.
    """
    if not settings.username.strip():
        raise SettingsValidationError(
            "CardDAV username is required. Set CONTACTS_SYNC_USERNAME or pass --username."
        )
    if not settings.password.strip():
        raise SettingsValidationError(
            "CardDAV app specific password is required. Set CONTACTS_SYNC_PASSWORD."
        )
    if not settings.folder.strip():
        raise SettingsValidationError("Contacts folder is required.")
    normalized = normalize_path(settings.folder)
    if settings.folder != normalized or normalized == "/":
        raise SettingsValidationError(
            f"Invalid contacts folder '{settings.folder}': "
            f"use the normalized form '{normalized}'."
        )


def settings_changed(current: Settings, previous: Settings | None) -> bool:
    """Return ``True`` if a presentation-affecting setting differs.

    Credentials and the server URL never count as a change.  Without a
    previous snapshot (first pass) nothing has changed.
    """
    if previous is None:
        return False
    for name in PRESENTATION_FIELDS:
        a = getattr(current, name)
        b = getattr(previous, name)
        if isinstance(a, list) or isinstance(b, list):
            if list(a or []) != list(b or []):
                return True
        elif a != b:
            return True
    return False


def load_settings(
    username: str | None = None,
    password: str | None = None,
    server_url: str | None = None,
    folder: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Settings:
    """Load settings with unified precedence.

    Resolution order for connection fields (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    Presentation fields (heading, labels, excluded keys, groups) come from
    ``yaml_fallbacks`` only, except ``CONTACTS_SYNC_NAME_HEADING``.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.
    Settings are not validated here; the engine validates before a pass.

    Args:
        username: Override account name.
        password: Override password.
        server_url: Override CardDAV server URL.
        folder: Override destination folder.
        yaml_fallbacks: Flat dict of values from the YAML config
            (``carddav`` and ``presentation`` sections merged).

    Returns:
        Settings instance.
    """
    fb = yaml_fallbacks or {}

    def pick(cli: str | None, env_key: str, fb_key: str, default: str) -> str:
        value = cli or os.getenv(env_key) or fb.get(fb_key) or default
        return str(value).strip()

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    env_heading = get_bool_env("CONTACTS_SYNC_NAME_HEADING")
    if env_heading is not None:
        is_name_heading = env_heading
    else:
        is_name_heading = bool(fb.get("name_heading", True))

    groups = fb.get("groups") or []
    if isinstance(groups, str):
        groups = groups.split()

    settings = Settings(
        username=pick(username, "CONTACTS_SYNC_USERNAME", "username", ""),
        password=pick(password, "CONTACTS_SYNC_PASSWORD", "password", ""),
        server_url=pick(
            server_url,
            "CONTACTS_SYNC_SERVER_URL",
            "server_url",
            DEFAULT_SERVER_URL,
        ).removesuffix("/"),
        folder=pick(folder, "CONTACTS_SYNC_FOLDER", "folder", DEFAULT_FOLDER),
        is_name_heading=is_name_heading,
        tel_labels=bool(fb.get("tel_labels", False)),
        email_labels=bool(fb.get("email_labels", False)),
        url_labels=bool(fb.get("url_labels", False)),
        related_labels=bool(fb.get("related_labels", False)),
        address_labels=bool(fb.get("address_labels", False)),
        excluded_keys=str(fb.get("excluded_keys", DEFAULT_EXCLUDED_KEYS)),
        groups=[str(g) for g in groups],
    )

    if not settings.server_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid CardDAV server URL '{settings.server_url}': must start with http:// or https://"
        )
    logger.debug(
        "Settings loaded: folder=%s server=%s", settings.folder, settings.server_url
    )
    return settings
