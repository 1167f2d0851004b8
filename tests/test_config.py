"""Tests for configuration loading."""

import json
import os
import stat

import pytest

from pygrive.config import DEFAULT_API_URL, Config
from pygrive.exceptions import GriveConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PYGRIVE_ENV",
        "PYGRIVE_CONFIG",
        "PYGRIVE_ACCESS_TOKEN",
        "PYGRIVE_REFRESH_TOKEN",
        "PYGRIVE_CLIENT_ID",
        "PYGRIVE_CLIENT_SECRET",
        "PYGRIVE_DIRECTORY",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigPath:
    """Tests for Config.get_config_path."""

    def test_default_per_environment(self, monkeypatch, tmp_path):
        """Test the file name follows the environment name."""
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("PYGRIVE_ENV", "production")

        path = Config().get_config_path()

        assert path == tmp_path / ".config" / "pygrive" / "production.json"

    def test_env_override(self, monkeypatch, tmp_path):
        """Test PYGRIVE_CONFIG points at an explicit file."""
        monkeypatch.setenv("PYGRIVE_CONFIG", str(tmp_path / "custom.json"))
        assert Config().get_config_path() == tmp_path / "custom.json"


class TestConfigValues:
    """Tests for reading settings."""

    def test_values_from_file(self, tmp_path):
        """Test settings are read from the JSON file."""
        path = tmp_path / "c.json"
        path.write_text(
            json.dumps(
                {
                    "client_id": "cid",
                    "client_secret": "secret",
                    "credentials": {"access_token": "at", "refresh_token": "rt"},
                    "directory": str(tmp_path / "sync"),
                }
            )
        )
        cfg = Config(path)

        assert cfg.client_id == "cid"
        assert cfg.client_secret == "secret"
        assert cfg.access_token == "at"
        assert cfg.refresh_token == "rt"
        assert cfg.directory == tmp_path / "sync"
        assert cfg.api_url == DEFAULT_API_URL
        assert cfg.is_configured()

    def test_environment_overrides_file(self, monkeypatch, tmp_path):
        """Test environment variables take precedence."""
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"credentials": {"access_token": "file"}}))
        monkeypatch.setenv("PYGRIVE_ACCESS_TOKEN", "env")

        assert Config(path).access_token == "env"

    def test_missing_file(self, tmp_path):
        """Test a missing file yields an unconfigured config."""
        cfg = Config(tmp_path / "missing.json")

        assert cfg.access_token is None
        assert cfg.directory is None
        assert not cfg.is_configured()

    def test_refresh_credentials_configure(self, tmp_path):
        """Test refresh credentials without an access token are enough."""
        path = tmp_path / "c.json"
        path.write_text(
            json.dumps(
                {
                    "client_id": "cid",
                    "client_secret": "s",
                    "credentials": {"refresh_token": "rt"},
                }
            )
        )
        assert Config(path).is_configured()

    def test_invalid_json(self, tmp_path):
        """Test malformed files raise GriveConfigError."""
        path = tmp_path / "c.json"
        path.write_text("{not json")

        with pytest.raises(GriveConfigError, match="Invalid config file"):
            Config(path).client_id

    def test_non_object(self, tmp_path):
        """Test the top level must be an object."""
        path = tmp_path / "c.json"
        path.write_text("[1, 2]")

        with pytest.raises(GriveConfigError):
            Config(path).client_id


class TestSaveCredentials:
    """Tests for Config.save_credentials."""

    def test_save_and_reload(self, tmp_path):
        """Test saved credentials are readable by a fresh Config."""
        path = tmp_path / "nested" / "c.json"
        cfg = Config(path)

        written = cfg.save_credentials("cid", "secret", "rt", directory="/sync")

        assert written == path
        fresh = Config(path)
        assert fresh.refresh_token == "rt"
        assert fresh.access_token is None
        assert str(fresh.directory) == "/sync"

    def test_file_is_private(self, tmp_path):
        """Test the credentials file is only readable by its owner."""
        path = tmp_path / "c.json"
        Config(path).save_credentials("cid", "secret", "rt")

        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode == 0o600

    def test_existing_keys_preserved(self, tmp_path):
        """Test unrelated settings survive a save."""
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"api_url": "https://drive.test"}))
        cfg = Config(path)

        cfg.save_credentials("cid", "secret", "rt", access_token="at")
        cfg.reload()

        assert cfg.api_url == "https://drive.test"
        assert cfg.access_token == "at"
