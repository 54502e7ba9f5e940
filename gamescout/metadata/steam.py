"""Steam Store metadata provider.

Uses the public store endpoints (no key needed) for search and details,
and builds artwork urls from the Steam CDN.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import GameArtwork, GameDescription, GameSearchResult, MetadataProvider
from ..controllers.rate_limit import RateLimitCoordinator
from ..utils.http import HttpClient
from ..utils.metadata import names_of, sanitize_description
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

STORE_API_BASE = "https://store.steampowered.com/api"
STEAM_CDN_BASE = "https://cdn.cloudflare.steamstatic.com/steam/apps"

PLATFORM_NAMES = {'windows': 'PC (Windows)', 'mac': 'Mac', 'linux': 'Linux'}


def cdn_artwork(app_id: str) -> GameArtwork:
    """Standard library assets for a Steam app."""
    base = f"{STEAM_CDN_BASE}/{app_id}"
    return GameArtwork(
        boxart_url=f"{base}/library_600x900.jpg",
        banner_url=f"{base}/header.jpg",
        hero_url=f"{base}/library_hero.jpg",
        logo_url=f"{base}/logo.png",
        boxart_resolution={'width': 600, 'height': 900},
        hero_resolution={'width': 1920, 'height': 620},
    )


def parse_store_date(value: Optional[str]) -> Optional[str]:
    """Store dates come localised ("10 Oct, 2007" or "Oct 10, 2007")."""
    if not value:
        return None
    for fmt in ("%d %b, %Y", "%b %d, %Y", "%d %B, %Y", "%B %d, %Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(value.strip(), fmt).date().isoformat()
        except ValueError:
            continue
    return value.strip()


class SteamProvider(MetadataProvider):
    """Steam Store catalog"""

    service_tag = 'steam'

    def __init__(self, coordinator: RateLimitCoordinator,
                 http: Optional[HttpClient] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 country: str = 'US', language: str = 'english'):
        super().__init__(coordinator, http, retry_policy)
        self.country = country
        self.language = language
        self._details: Dict[str, Dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return 'steam'

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        async def execute():
            return await self.http.get_json(f"{STORE_API_BASE}/{path}", params=params)

        return await self._call(path, execute)

    async def get_app_details(self, app_id: str) -> Optional[Dict[str, Any]]:
        if app_id in self._details:
            return self._details[app_id]
        data = await self._get('appdetails', {'appids': app_id, 'cc': self.country, 'l': self.language}) or {}
        entry = data.get(str(app_id)) or {}
        if not entry.get('success') or not isinstance(entry.get('data'), dict):
            logger.debug(f"[Steam] No store details for {app_id}")
            return None
        self._details[app_id] = entry['data']
        return entry['data']

    async def search(self, title: str, steam_app_id: Optional[str] = None) -> List[GameSearchResult]:
        if not await self.is_available():
            return []

        if steam_app_id:
            details = await self.get_app_details(str(steam_app_id))
            if details:
                return [GameSearchResult(
                    id=self.make_id(steam_app_id),
                    title=details.get('name') or title,
                    source=self.name,
                    external_id=str(steam_app_id),
                    steam_app_id=str(steam_app_id),
                    release_date=parse_store_date((details.get('release_date') or {}).get('date')),
                )]

        data = await self._get('storesearch/', {'term': title, 'l': self.language, 'cc': self.country}) or {}
        results = []
        for item in data.get('items') or []:
            if not isinstance(item, dict) or not item.get('id'):
                continue
            app_id = str(item['id'])
            results.append(GameSearchResult(
                id=self.make_id(app_id),
                title=item.get('name', ''),
                source=self.name,
                external_id=app_id,
                steam_app_id=app_id,
            ))
        logger.debug(f"[Steam] '{title}': {len(results)} results")
        return results

    async def get_description(self, game_id: str) -> Optional[GameDescription]:
        if not await self.is_available():
            return None
        app_id = self.parse_id(game_id)
        if not app_id:
            return None
        details = await self.get_app_details(app_id)
        if not details:
            return None

        platforms = [PLATFORM_NAMES[key] for key, supported in (details.get('platforms') or {}).items()
                     if supported and key in PLATFORM_NAMES]
        metacritic = (details.get('metacritic') or {}).get('score')
        required_age = details.get('required_age')

        description = GameDescription(
            description=sanitize_description(details.get('detailed_description')
                                             or details.get('about_the_game')) or None,
            summary=sanitize_description(details.get('short_description'), max_length=500) or None,
            release_date=parse_store_date((details.get('release_date') or {}).get('date')),
            genres=names_of(details.get('genres'), key='description'),
            developers=names_of(details.get('developers')),
            publishers=names_of(details.get('publishers')),
            categories=names_of(details.get('categories'), key='description'),
            age_rating=f"{required_age}+" if str(required_age or '0') not in ('0', '') else None,
            rating=float(metacritic) if metacritic is not None else None,
            platforms=platforms,
        )
        return None if description.is_empty() else description

    async def get_artwork(self, game_id: str, steam_app_id: Optional[str] = None) -> Optional[GameArtwork]:
        if not await self.is_available():
            return None
        app_id = self.parse_id(game_id) or steam_app_id
        if not app_id or not str(app_id).isdigit():
            return None
        return cdn_artwork(str(app_id))
