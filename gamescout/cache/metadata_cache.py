"""Resolved metadata cache.

Stores merged provider results keyed by Steam app id (when known) or by
normalized title, so re-scans do not hit the APIs again. Entries expire
after 24 hours. The cache lives in user data (~/.local/share/gamescout).
"""

import json
import logging
import os
import time
from typing import Any, Callable, Dict, Optional

from ..utils.matching import normalize_title
from ..utils.paths import get_metadata_cache_path

logger = logging.getLogger(__name__)

CACHE_TTL = 24 * 60 * 60  # seconds


def generate_key(title: str, steam_app_id: Optional[str] = None) -> str:
    """Cache key for a game.

    Examples:
        ("Portal 2", "620") -> "steam-620"
        ("Halo: Infinite", None) -> "title-halo infinite"
    """
    if steam_app_id and str(steam_app_id).isdigit():
        return f"steam-{steam_app_id}"
    return f"title-{normalize_title(title)}"


class MetadataCache:
    """In-memory TTL cache with optional JSON persistence."""

    def __init__(self, path: Optional[str] = None, ttl: float = CACHE_TTL,
                 clock: Callable[[], float] = time.time):
        self.path = path
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def default(cls) -> 'MetadataCache':
        cache = cls(get_metadata_cache_path())
        cache.load()
        return cache

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry['timestamp'] > self.ttl:
            del self._entries[key]
            return None
        return entry['metadata']

    def set(self, key: str, metadata: Dict[str, Any]) -> None:
        self._entries[key] = {'metadata': metadata, 'timestamp': self._clock()}

    def clear(self) -> None:
        self._entries.clear()

    def load(self) -> int:
        """Load unexpired entries from disk. Returns how many were loaded."""
        if not self.path or not os.path.exists(self.path):
            return 0
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading metadata cache: {e}")
            return 0

        now = self._clock()
        self._entries = {
            key: entry for key, entry in data.items()
            if isinstance(entry, dict) and 'metadata' in entry
            and now - entry.get('timestamp', 0) <= self.ttl
        }
        return len(self._entries)

    def save(self) -> bool:
        """Persist the cache as JSON."""
        if not self.path:
            return False
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(self._entries, f, indent=2)
            logger.info(f"Saved {len(self._entries)} metadata entries to cache")
            return True
        except OSError as e:
            logger.error(f"Error saving metadata cache: {e}")
            return False
