"""Configuration management for pygrive.

Settings are read from a per-environment JSON file
(``~/.config/pygrive/<env>.json`` by default) and may be overridden by
environment variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import GriveConfigError

DEFAULT_API_URL = "https://www.googleapis.com"
DEFAULT_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_REDIRECT_URL = "urn:ietf:wg:oauth:2.0:oob"


class Config:
    """Configuration manager for pygrive."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Explicit config file (default: derived from
                PYGRIVE_CONFIG or the environment name)
        """
        self._config_path = config_path
        self._data: Optional[dict[str, Any]] = None

    @property
    def env(self) -> str:
        """Environment name (PYGRIVE_ENV, default 'development')."""
        return os.environ.get("PYGRIVE_ENV", "development")

    @property
    def config_dir(self) -> Path:
        """Directory holding pygrive configuration files."""
        return Path.home() / ".config" / "pygrive"

    def get_config_path(self) -> Path:
        """Get the path of the active configuration file."""
        if self._config_path is not None:
            return self._config_path
        env_path = os.environ.get("PYGRIVE_CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        return self.config_dir / f"{self.env}.json"

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        path = self.get_config_path()
        data: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise GriveConfigError(f"Invalid config file {path}: {e}") from e
            if not isinstance(data, dict):
                raise GriveConfigError(f"Config file {path} must contain an object")

        self._data = data
        return data

    def reload(self) -> None:
        """Drop cached file contents so the next access re-reads the file."""
        self._data = None

    def _credentials(self) -> dict[str, Any]:
        credentials = self._load().get("credentials") or {}
        return credentials if isinstance(credentials, dict) else {}

    @property
    def access_token(self) -> Optional[str]:
        """OAuth2 access token."""
        return os.environ.get("PYGRIVE_ACCESS_TOKEN") or self._credentials().get(
            "access_token"
        )

    @property
    def refresh_token(self) -> Optional[str]:
        """OAuth2 refresh token."""
        return os.environ.get("PYGRIVE_REFRESH_TOKEN") or self._credentials().get(
            "refresh_token"
        )

    @property
    def client_id(self) -> Optional[str]:
        """OAuth2 client id."""
        return os.environ.get("PYGRIVE_CLIENT_ID") or self._load().get("client_id")

    @property
    def client_secret(self) -> Optional[str]:
        """OAuth2 client secret."""
        return os.environ.get("PYGRIVE_CLIENT_SECRET") or self._load().get(
            "client_secret"
        )

    @property
    def redirect_url(self) -> str:
        """OAuth2 redirect URL."""
        return self._load().get("redirect_url") or DEFAULT_REDIRECT_URL

    @property
    def api_url(self) -> str:
        """Base URL of the remote API."""
        return self._load().get("api_url") or DEFAULT_API_URL

    @property
    def token_url(self) -> str:
        """OAuth2 token endpoint."""
        return self._load().get("token_url") or DEFAULT_TOKEN_URL

    @property
    def directory(self) -> Optional[Path]:
        """Local directory to watch."""
        value = os.environ.get("PYGRIVE_DIRECTORY") or self._load().get("directory")
        return Path(value).expanduser() if value else None

    def is_configured(self) -> bool:
        """Check whether enough credentials exist to talk to the remote store."""
        if self.access_token:
            return True
        return bool(self.refresh_token and self.client_id and self.client_secret)

    def save_credentials(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        access_token: Optional[str] = None,
        directory: Optional[str] = None,
    ) -> Path:
        """Write credentials to the configuration file.

        Existing keys not mentioned here are preserved.

        Args:
            client_id: OAuth2 client id
            client_secret: OAuth2 client secret
            refresh_token: OAuth2 refresh token
            access_token: Optional current access token
            directory: Optional local directory to watch

        Returns:
            Path of the written file
        """
        path = self.get_config_path()
        data = dict(self._load())
        data["client_id"] = client_id
        data["client_secret"] = client_secret
        credentials: dict[str, Any] = {"refresh_token": refresh_token}
        if access_token:
            credentials["access_token"] = access_token
        data["credentials"] = credentials
        if directory:
            data["directory"] = directory

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        # Credentials should only be readable by the owner
        os.chmod(path, 0o600)

        self._data = data
        return path


config = Config()
