"""
Settings and credential storage.

Settings live in a single JSON file under the data directory
(~/.local/share/gamescout/settings.json). Provider credentials can also be
supplied through environment variables, which take precedence over the file.
"""
import json
import logging
import os
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional

from .utils.paths import get_settings_path

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_PRIORITY = ['steam', 'igdb', 'rawg', 'steamgriddb']

# provider -> {credential field: environment variable}
CREDENTIAL_ENV_VARS = {
    'igdb': {'client_id': 'IGDB_CLIENT_ID', 'client_secret': 'IGDB_CLIENT_SECRET'},
    'steamgriddb': {'api_key': 'STEAMGRIDDB_API_KEY'},
    'rawg': {'api_key': 'RAWG_API_KEY'},
}


@dataclass
class LauncherConfig:
    """One configured scan root"""
    id: str  # source name, e.g. 'steam', 'epic', 'manual_folder'
    path: str
    name: str = ""
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LauncherConfig':
        return cls(
            id=str(data['id']),
            path=str(data.get('path', '')),
            name=str(data.get('name') or data['id']),
            enabled=bool(data.get('enabled', True)),
        )


@dataclass
class Settings:
    launchers: List[LauncherConfig] = field(default_factory=list)
    credentials: Dict[str, Dict[str, str]] = field(default_factory=dict)
    provider_priority: List[str] = field(default_factory=lambda: list(DEFAULT_PROVIDER_PRIORITY))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'launchers': [launcher.to_dict() for launcher in self.launchers],
            'credentials': self.credentials,
            'provider_priority': self.provider_priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        launchers = []
        for entry in data.get('launchers', []):
            try:
                launchers.append(LauncherConfig.from_dict(entry))
            except (KeyError, TypeError) as e:
                logger.warning(f"[Settings] Ignoring malformed launcher entry {entry!r}: {e}")
        return cls(
            launchers=launchers,
            credentials=dict(data.get('credentials', {})),
            provider_priority=list(data.get('provider_priority', DEFAULT_PROVIDER_PRIORITY)),
        )

    def enabled_launchers(self) -> List[LauncherConfig]:
        return [launcher for launcher in self.launchers if launcher.enabled and launcher.path]


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from disk, returning defaults when the file is missing or unreadable."""
    path = path or get_settings_path()
    try:
        if os.path.exists(path):
            with open(path, 'r') as f:
                return Settings.from_dict(json.load(f))
    except (OSError, ValueError) as e:
        logger.error(f"[Settings] Error loading settings from {path}: {e}")
    return Settings()


def save_settings(settings: Settings, path: Optional[str] = None) -> bool:
    """Persist settings as JSON."""
    path = path or get_settings_path()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w') as f:
            json.dump(settings.to_dict(), f, indent=2)
        logger.info(f"[Settings] Saved settings with {len(settings.launchers)} launchers")
        return True
    except OSError as e:
        logger.error(f"[Settings] Error saving settings: {e}")
        return False


class CredentialStore:
    """Read-only view over stored and environment-provided API credentials."""

    def __init__(self, settings: Optional[Settings] = None, environ: Optional[Dict[str, str]] = None):
        self._stored = settings.credentials if settings else {}
        self._environ = os.environ if environ is None else environ

    def get_credentials(self, provider: str) -> Dict[str, str]:
        """
        Get the credentials for one provider.

        Args:
            provider: Provider name ('igdb', 'rawg', 'steamgriddb', ...)

        Returns:
            Dict with any of 'client_id', 'client_secret', 'api_key'. Empty
            values are left out.
        """
        creds = {k: v for k, v in self._stored.get(provider, {}).items() if v}
        for key, env_var in CREDENTIAL_ENV_VARS.get(provider, {}).items():
            value = self._environ.get(env_var, '').strip()
            if value:
                creds[key] = value
        return creds
