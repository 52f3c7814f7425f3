"""
Persistent configuration: access token, refresh token and OAuth app settings.

Stored as JSON (``config.json`` by default).
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError
from .models import DEFAULT_APP_PATH

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"
CONFIG_ENV_VAR = "NETDISK_UPLOADER_CONFIG"
DEFAULT_REDIRECT_URI = "http://localhost:8080/callback"
DEFAULT_SCOPE = "basic,netdisk"

PLACEHOLDER_TOKEN = "your_access_token_here"
PLACEHOLDER_CLIENT_ID = "your_app_key_here"
PLACEHOLDER_CLIENT_SECRET = "your_secret_key_here"


@dataclass
class OAuthConfig:
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = DEFAULT_SCOPE

    @property
    def is_configured(self) -> bool:
        return (
            bool(self.client_id) and self.client_id != PLACEHOLDER_CLIENT_ID
            and bool(self.client_secret) and self.client_secret != PLACEHOLDER_CLIENT_SECRET
        )


@dataclass(frozen=True)
class TokenResponse:
    """Token endpoint answer."""
    access_token: str
    refresh_token: str = ""
    expires_in: int = 0
    scope: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenResponse":
        return cls(
            access_token=str(data.get("access_token", "")),
            refresh_token=str(data.get("refresh_token", "") or ""),
            expires_in=int(data.get("expires_in", 0) or 0),
            scope=str(data.get("scope", "") or ""),
        )


@dataclass
class AppConfig:
    access_token: str = ""
    refresh_token: str = ""
    expires_at: Optional[datetime] = None
    app_path: str = DEFAULT_APP_PATH
    oauth: Optional[OAuthConfig] = field(default=None)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now()) >= self.expires_at

    def apply_token(self, token: TokenResponse, now: Optional[datetime] = None) -> None:
        """Merge a fresh token into this config."""
        self.access_token = token.access_token
        if token.refresh_token:
            self.refresh_token = token.refresh_token
        if token.expires_in > 0:
            self.expires_at = (now or datetime.now()) + timedelta(seconds=token.expires_in)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "access_token": self.access_token,
            "app_path": self.app_path,
        }
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        if self.oauth is not None:
            data["oauth"] = asdict(self.oauth)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        expires_at = None
        raw_expires = data.get("expires_at")
        if raw_expires:
            try:
                expires_at = datetime.fromisoformat(_rfc3339_utc(str(raw_expires)))
            except ValueError as e:
                raise ConfigError(f"invalid expires_at value: {raw_expires}") from e
            if expires_at.tzinfo is not None:
                # compared against naive local time
                expires_at = expires_at.astimezone().replace(tzinfo=None)

        oauth = None
        if isinstance(data.get("oauth"), dict):
            raw = data["oauth"]
            oauth = OAuthConfig(
                client_id=str(raw.get("client_id", "") or ""),
                client_secret=str(raw.get("client_secret", "") or ""),
                redirect_uri=str(raw.get("redirect_uri") or DEFAULT_REDIRECT_URI),
                scope=str(raw.get("scope") or DEFAULT_SCOPE),
            )

        return cls(
            access_token=str(data.get("access_token", "") or ""),
            refresh_token=str(data.get("refresh_token", "") or ""),
            expires_at=expires_at,
            app_path=str(data.get("app_path") or DEFAULT_APP_PATH),
            oauth=oauth,
        )


def _rfc3339_utc(value: str) -> str:
    """fromisoformat before 3.11 does not take a trailing Z."""
    return value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Explicit path, else $NETDISK_UPLOADER_CONFIG, else ./config.json."""
    if path is not None:
        return Path(path)
    env_path = os.getenv(CONFIG_ENV_VAR)
    return Path(env_path) if env_path else Path(DEFAULT_CONFIG_FILE)


def _read(path: Path) -> AppConfig:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"could not read config file {path}: {e}") from e
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"could not parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")
    return AppConfig.from_dict(data)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load config for uploading; an access token is required."""
    config = _read(resolve_config_path(path))
    if not config.access_token:
        raise ConfigError("access_token missing from config file")
    return config


def load_config_for_auth(path: Optional[Path] = None) -> AppConfig:
    """Load config for authorization; real OAuth client credentials are required."""
    config = _read(resolve_config_path(path))
    if config.oauth is None:
        raise ConfigError("oauth section missing from config file")
    if not config.oauth.client_id or config.oauth.client_id == PLACEHOLDER_CLIENT_ID:
        raise ConfigError("set a real client_id (App Key) in the config file first")
    if not config.oauth.client_secret or config.oauth.client_secret == PLACEHOLDER_CLIENT_SECRET:
        raise ConfigError("set a real client_secret (Secret Key) in the config file first")
    return config


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    path = resolve_config_path(path)
    try:
        path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"could not write config file {path}: {e}") from e
    logger.debug("Saved config to %s", path)
    return path


def create_default_config(path: Optional[Path] = None) -> Path:
    """Write a config file with placeholder values."""
    config = AppConfig(
        access_token=PLACEHOLDER_TOKEN,
        app_path=DEFAULT_APP_PATH,
        oauth=OAuthConfig(
            client_id=PLACEHOLDER_CLIENT_ID,
            client_secret=PLACEHOLDER_CLIENT_SECRET,
        ),
    )
    return save_config(config, path)


def save_token(token: TokenResponse, path: Optional[Path] = None) -> AppConfig:
    """Store a fresh token in the existing config file."""
    config = load_config_for_auth(path)
    config.apply_token(token)
    save_config(config, path)
    return config
