"""Unified configuration schema for contacts_sync.

Defines Pydantic models for the YAML config file, with sections for the
CardDAV connection, note presentation and logging.  ``to_yaml_fallbacks``
flattens a validated config into the dict ``load_settings`` reads from.

Usage:
    from contacts_sync.config_schema import build_config, to_yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    settings = load_settings(yaml_fallbacks=to_yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from .config import DEFAULT_EXCLUDED_KEYS, DEFAULT_FOLDER, DEFAULT_SERVER_URL

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class CardDAVConfig(BaseModel):
    """CardDAV connection and destination settings.

    Credentials are optional here so they can live in env vars or a .env
    file instead of the config file.
    """

    username: str | None = Field(default=None, description="CardDAV account name")
    password: str | None = Field(
        default=None, description="CardDAV app specific password"
    )
    server_url: str = Field(
        default=DEFAULT_SERVER_URL, description="CardDAV server URL"
    )
    folder: str = Field(
        default=DEFAULT_FOLDER, description="Vault folder that holds contact notes"
    )

    model_config = {"frozen": True}

    @field_validator("server_url")
    @classmethod
    def _check_scheme(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return value.rstrip("/")


class PresentationConfig(BaseModel):
    """How contact notes are rendered."""

    name_heading: bool = Field(
        default=True, description="Write a '# Name' heading at the top of each note"
    )
    tel_labels: bool = False
    email_labels: bool = False
    url_labels: bool = False
    related_labels: bool = False
    address_labels: bool = False
    excluded_keys: str = Field(
        default=DEFAULT_EXCLUDED_KEYS,
        description="Whitespace separated field keys left out of front matter",
    )
    groups: list[str] = Field(
        default_factory=list,
        description="Remote group UIDs to sync; empty syncs every contact",
    )

    model_config = {"frozen": True}

    @field_validator("groups", mode="before")
    @classmethod
    def _split_groups(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return value.split()
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    carddav: CardDAVConfig = Field(default_factory=CardDAVConfig)
    presentation: PresentationConfig = Field(default_factory=PresentationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory and adapter
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If a section holds invalid values.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten *unified* into the ``yaml_fallbacks`` dict of ``load_settings``.

    Unset credentials are left out so env vars are not shadowed by empty
    values.
    """
    fallbacks = unified.presentation.model_dump()
    fallbacks.update(unified.carddav.model_dump(exclude_none=True))
    return fallbacks
