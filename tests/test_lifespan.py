"""Tests for contacts_sync.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads settings from env vars, YAML config and CLI overrides
- Validates credentials, folder and the vault directory
- Fails fast with RuntimeError on configuration errors
- Prints status messages to stderr
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from contacts_sync.core.carddav import fetch_contacts
from contacts_sync.mcp.lifespan import DEFAULT_STATE_DIR, ServerContext, server_lifespan
from contacts_sync.sync.runner import DEFAULT_PROFILE

# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Isolated CWD/HOME with credentials in the environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in (
        "CONTACTS_SYNC_CONFIG",
        "CONTACTS_SYNC_SERVER_URL",
        "CONTACTS_SYNC_FOLDER",
        "CONTACTS_SYNC_NAME_HEADING",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CONTACTS_SYNC_USERNAME", "ada@example.org")
    monkeypatch.setenv("CONTACTS_SYNC_PASSWORD", "app-password")
    with (
        patch("contacts_sync.mcp.lifespan.load_dotenv"),
        patch("contacts_sync.mcp.lifespan._stderr_print") as mock_print,
    ):
        yield mock_print


# -------------------------------------------------------------------------
# Successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    async def test_defaults(self, env, tmp_path):
        async with server_lifespan() as ctx:
            context = ctx["context"]
            assert isinstance(context, ServerContext)
            assert context.settings.username == "ada@example.org"
            assert context.settings.folder == "Contacts"
            assert context.vault_root == tmp_path.resolve()
            assert context.state_dir == tmp_path.resolve() / DEFAULT_STATE_DIR
            assert context.profile == DEFAULT_PROFILE
            assert context.fetcher is fetch_contacts
            assert not context.lock.locked()

    async def test_overrides(self, env, tmp_path):
        vault = tmp_path / "vault"
        vault.mkdir()
        overrides = {
            "vault": str(vault),
            "folder": "People",
            "username": "bea@example.org",
            "state_dir": str(tmp_path / "state"),
            "profile": "work",
        }
        async with server_lifespan(overrides) as ctx:
            context = ctx["context"]
            assert context.vault_root == vault.resolve()
            assert context.settings.folder == "People"
            assert context.settings.username == "bea@example.org"
            assert context.state_dir == Path(tmp_path / "state")
            assert context.profile == "work"

    async def test_yaml_config_used(self, env, tmp_path):
        config_dir = tmp_path / ".contacts_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text(
            "carddav:\n  folder: Address Book\npresentation:\n  tel_labels: true\n"
        )
        async with server_lifespan() as ctx:
            settings = ctx["context"].settings
            assert settings.folder == "Address Book"
            assert settings.tel_labels is True

        messages = " ".join(call.args[0] for call in env.call_args_list)
        assert "config file" in messages

    async def test_shutdown_message(self, env):
        async with server_lifespan():
            pass
        assert env.call_args_list[-1].args[0] == "Contacts sync MCP server shutting down."


# -------------------------------------------------------------------------
# Fail fast
# -------------------------------------------------------------------------


class TestServerLifespanFailures:
    async def test_missing_password(self, env, monkeypatch):
        monkeypatch.delenv("CONTACTS_SYNC_PASSWORD")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan():
                pass
        messages = " ".join(call.args[0] for call in env.call_args_list)
        assert "CONTACTS_SYNC_PASSWORD" in messages

    async def test_bad_folder(self, env):
        with pytest.raises(RuntimeError, match="Invalid contacts folder"):
            async with server_lifespan({"folder": "/People/"}):
                pass

    async def test_bad_yaml(self, env, tmp_path):
        config_dir = tmp_path / ".contacts_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text("carddav: [unclosed\n")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan():
                pass

    async def test_invalid_config_values(self, env, tmp_path):
        config_dir = tmp_path / ".contacts_sync"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text("carddav:\n  server_url: ftp://dav.example.com\n")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan():
                pass

    async def test_missing_vault(self, env, tmp_path):
        with pytest.raises(RuntimeError, match="Vault directory not found"):
            async with server_lifespan({"vault": str(tmp_path / "nope")}):
                pass
