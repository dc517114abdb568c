"""Tests for the unified config schema and the load_settings adapter.

Tests all Pydantic models in config_schema.py (UnifiedConfig,
CardDAVConfig, PresentationConfig, LoggingConfig), the build_config()
factory, and the to_yaml_fallbacks() adapter.
"""

import pytest
from pydantic import ValidationError

from contacts_sync.config import DEFAULT_EXCLUDED_KEYS, DEFAULT_SERVER_URL, load_settings
from contacts_sync.config_schema import (
    CardDAVConfig,
    LoggingConfig,
    PresentationConfig,
    UnifiedConfig,
    build_config,
    to_yaml_fallbacks,
)

# ---------------------------------------------------------------------------
# UnifiedConfig tests
# ---------------------------------------------------------------------------


class TestUnifiedConfig:
    """Tests for the top-level UnifiedConfig model."""

    def test_zero_config_defaults(self):
        config = UnifiedConfig()
        assert config.carddav.username is None
        assert config.carddav.server_url == DEFAULT_SERVER_URL
        assert config.carddav.folder == "Contacts"
        assert config.presentation.name_heading is True
        assert config.presentation.excluded_keys == DEFAULT_EXCLUDED_KEYS
        assert config.logging.level == "INFO"

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.carddav.folder = "People"

    def test_full_config(self):
        config = build_config(
            {
                "carddav": {
                    "username": "ada@example.org",
                    "server_url": "https://dav.example.com/",
                    "folder": "People",
                },
                "presentation": {"tel_labels": True, "groups": ["g1"]},
                "logging": {"level": "DEBUG", "file": "/tmp/cs.log"},
            }
        )
        assert config.carddav.server_url == "https://dav.example.com"
        assert config.carddav.folder == "People"
        assert config.presentation.tel_labels is True
        assert config.presentation.groups == ["g1"]
        assert config.logging == LoggingConfig(level="DEBUG", file="/tmp/cs.log")


class TestSectionModels:
    def test_bad_server_url(self):
        with pytest.raises(ValidationError, match="http:// or https://"):
            CardDAVConfig(server_url="dav.example.com")

    @pytest.mark.parametrize(
        "groups, expected",
        [(None, []), ("g1  g2", ["g1", "g2"]), (["g3"], ["g3"])],
    )
    def test_groups_forms(self, groups, expected):
        assert PresentationConfig(groups=groups).groups == expected

    def test_bad_toggle_type(self):
        with pytest.raises(ValidationError):
            PresentationConfig(tel_labels="sometimes")


# ---------------------------------------------------------------------------
# build_config / to_yaml_fallbacks
# ---------------------------------------------------------------------------


class TestBuildConfig:
    def test_empty_dict(self):
        assert build_config({}) == UnifiedConfig()

    def test_unknown_sections_ignored(self):
        assert build_config({"retired": {"x": 1}}) == UnifiedConfig()

    def test_invalid_values_raise(self):
        with pytest.raises(ValidationError):
            build_config({"carddav": {"server_url": "ftp://x"}})


class TestToYamlFallbacks:
    def test_unset_credentials_left_out(self):
        fallbacks = to_yaml_fallbacks(UnifiedConfig())
        assert "username" not in fallbacks
        assert "password" not in fallbacks
        assert fallbacks["folder"] == "Contacts"
        assert fallbacks["name_heading"] is True

    def test_feeds_load_settings(self, monkeypatch):
        for key in ("CONTACTS_SYNC_USERNAME", "CONTACTS_SYNC_FOLDER", "CONTACTS_SYNC_NAME_HEADING"):
            monkeypatch.delenv(key, raising=False)
        unified = build_config(
            {
                "carddav": {"username": "ada@example.org", "folder": "People"},
                "presentation": {"name_heading": False, "email_labels": True, "groups": "g1"},
            }
        )
        settings = load_settings(yaml_fallbacks=to_yaml_fallbacks(unified))
        assert settings.username == "ada@example.org"
        assert settings.folder == "People"
        assert settings.is_name_heading is False
        assert settings.email_labels is True
        assert settings.groups == ["g1"]
