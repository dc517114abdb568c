"""Tests for contacts_sync.config_loader: hierarchical config loading."""

import textwrap

import pytest
import yaml

from contacts_sync.config_loader import (
    CONFIG_ENV_VAR,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    load_unified_config,
    resolve_config_path,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with an empty CWD, a fake HOME and no config env var."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "fakehome"))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    return tmp_path


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("CS_USER", "ada@example.org")
        assert interpolate_env_vars("${CS_USER}") == "ada@example.org"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-Contacts}") == "Contacts"

    def test_empty_env_var_uses_default(self, monkeypatch):
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${EMPTY_VAR:-People}") == "People"

    def test_multiple_vars_in_one_string(self, monkeypatch):
        monkeypatch.setenv("CS_HOST", "dav.example.com")
        monkeypatch.setenv("CS_PORT", "8443")
        assert interpolate_env_vars("https://${CS_HOST}:${CS_PORT}") == "https://dav.example.com:8443"

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("price ${oops") == "price ${oops"


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_empty_filesystem_returns_empty(self, isolated):
        assert discover_config_files() == []

    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        explicit = _write(isolated / "elsewhere.yml", "carddav: {}\n")
        project = _write(isolated / ".contacts_sync" / "config.yml", "carddav: {}\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(explicit))

        assert discover_config_files() == [explicit.resolve(), project]

    def test_project_before_global(self, isolated):
        project = _write(isolated / ".contacts_sync" / "config.yml", "")
        alternate = _write(isolated / ".contacts_sync" / "config.yaml", "")
        global_cfg = _write(isolated / "fakehome" / ".config" / "contacts_sync" / "config.yml", "")

        assert discover_config_files() == [project, alternate, global_cfg]

    def test_missing_env_path_excluded(self, isolated, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(isolated / "missing.yml"))
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Bootstrapping
# -------------------------------------------------------------------------


class TestEnsureConfig:
    def test_creates_starter(self, isolated):
        path = ensure_config()
        assert path == isolated / ".contacts_sync" / "config.yml"
        text = path.read_text()
        assert "CONTACTS_SYNC_USERNAME" in text
        # Every line is commented, so the starter loads as zero-config.
        assert yaml.safe_load(text) is None

    def test_existing_config_untouched(self, isolated):
        existing = _write(isolated / ".contacts_sync" / "config.yml", "carddav:\n  folder: People\n")
        assert ensure_config(isolated / "other.yml") == existing
        assert existing.read_text() == "carddav:\n  folder: People\n"
        assert not (isolated / "other.yml").exists()

    def test_explicit_target(self, isolated):
        target = isolated / "cfg" / "contacts.yml"
        assert ensure_config(target) == target
        assert target.exists()

    def test_resolve_config_path_default(self, isolated):
        assert resolve_config_path() == isolated / ".contacts_sync" / "config.yml"


# -------------------------------------------------------------------------
# Merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_zero_config_returns_empty_dict(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_overrides_global_at_section_level(self, isolated):
        _write(
            isolated / "fakehome" / ".config" / "contacts_sync" / "config.yml",
            """\
            carddav:
              username: global@example.org
              folder: Global
            logging:
              level: DEBUG
            """,
        )
        _write(
            isolated / ".contacts_sync" / "config.yml",
            """\
            carddav:
              folder: Project
            """,
        )

        merged = load_hierarchical_config()

        # Sections replace, they do not deep-merge.
        assert merged["carddav"] == {"folder": "Project"}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_env_var_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("CS_SECRET", "app-password")
        _write(
            isolated / ".contacts_sync" / "config.yml",
            """\
            carddav:
              password: ${CS_SECRET}
              folder: ${CS_FOLDER:-Contacts}
            presentation:
              groups: ["${CS_GROUP:-g1}"]
            """,
        )
        monkeypatch.delenv("CS_FOLDER", raising=False)
        monkeypatch.delenv("CS_GROUP", raising=False)

        merged = load_hierarchical_config()

        assert merged["carddav"] == {"password": "app-password", "folder": "Contacts"}
        assert merged["presentation"] == {"groups": ["g1"]}

    def test_non_dict_root_skipped(self, isolated):
        _write(isolated / ".contacts_sync" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}

    def test_invalid_yaml_raises(self, isolated):
        _write(isolated / ".contacts_sync" / "config.yml", "carddav: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()

    def test_load_unified_config(self, isolated):
        _write(
            isolated / ".contacts_sync" / "config.yml",
            """\
            carddav:
              server_url: https://dav.example.com/
            presentation:
              tel_labels: true
            """,
        )
        unified = load_unified_config()
        assert unified.carddav.server_url == "https://dav.example.com"
        assert unified.presentation.tel_labels is True
