"""IGDB metadata provider.

IGDB authenticates through Twitch's OAuth client-credentials grant. Queries
are Apicalypse text bodies POSTed to https://api.igdb.com/v4/<endpoint>.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .base import GameArtwork, GameDescription, GameSearchResult, MetadataProvider
from ..controllers.rate_limit import RateLimitCoordinator
from ..errors import ProviderError
from ..utils.http import HttpClient
from ..utils.metadata import names_of, sanitize_description
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

IGDB_API_BASE = "https://api.igdb.com/v4"
TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
TOKEN_SAFETY_MARGIN = 60  # seconds
STEAM_EXTERNAL_CATEGORY = 1

GAME_FIELDS = (
    "name, summary, storyline, cover.url, screenshots.url, artworks.url, rating, "
    "first_release_date, genres.name, platforms.name, category, "
    "age_ratings.category, age_ratings.rating, "
    "involved_companies.company.name, involved_companies.developer, involved_companies.publisher, "
    "external_games.category, external_games.uid"
)

ESRB_RATINGS = {
    1: 'EC (Early Childhood)',
    2: 'E (Everyone)',
    3: 'E10+ (Everyone 10+)',
    4: 'T (Teen)',
    5: 'M (Mature)',
    6: 'AO (Adults Only)',
}

PEGI_RATINGS = {
    1: 'PEGI 3',
    2: 'PEGI 7',
    3: 'PEGI 12',
    4: 'PEGI 16',
    5: 'PEGI 18',
}

GAME_CATEGORIES = {
    0: 'Main Game',
    1: 'DLC/Add-on',
    2: 'Expansion',
    3: 'Bundle',
    4: 'Standalone Expansion',
    5: 'Mod',
    6: 'Episode',
    7: 'Season',
    8: 'Remake',
    9: 'Remaster',
    10: 'Expanded Game',
    11: 'Port',
    12: 'Fork',
    13: 'Pack',
    14: 'Update',
}


@dataclass
class AccessTokenCache:
    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.token) and now < self.expires_at


def image_url(url: Optional[str], size: str) -> Optional[str]:
    """Absolute IGDB image url at the requested size.

    Examples:
        "//images.igdb.com/igdb/image/upload/t_thumb/co1r7f.jpg", "t_cover_big"
            -> "https://images.igdb.com/igdb/image/upload/t_cover_big/co1r7f.jpg"
    """
    if not url:
        return None
    if url.startswith('//'):
        url = 'https:' + url
    return url.replace('t_thumb', size)


def format_age_rating(age_ratings: Optional[List[Any]]) -> Optional[str]:
    """First ESRB or PEGI rating, formatted for display."""
    for entry in age_ratings or []:
        if not isinstance(entry, dict):
            continue
        category, rating = entry.get('category'), entry.get('rating')
        if category == 1 and rating is not None:
            return ESRB_RATINGS.get(rating, f"ESRB {rating}")
        if category == 2 and rating is not None:
            return PEGI_RATINGS.get(rating, f"PEGI {rating}")
    return None


def steam_id_from_external_games(external_games: Optional[List[Any]]) -> Optional[str]:
    for entry in external_games or []:
        if isinstance(entry, dict) and entry.get('category') == STEAM_EXTERNAL_CATEGORY and entry.get('uid'):
            return str(entry['uid'])
    return None


def escape_query(text: str) -> str:
    return text.replace('\\', '\\\\').replace('"', '\\"')


class IGDBProvider(MetadataProvider):
    """IGDB (Twitch) catalog"""

    service_tag = 'igdb'

    def __init__(self, coordinator: RateLimitCoordinator,
                 credentials: Optional[Dict[str, str]] = None,
                 http: Optional[HttpClient] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 clock: Callable[[], float] = time.time):
        super().__init__(coordinator, http, retry_policy)
        credentials = credentials or {}
        self.client_id = credentials.get('client_id')
        self.client_secret = credentials.get('client_secret')
        self._clock = clock
        self._token: Optional[AccessTokenCache] = None
        self._token_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return 'igdb'

    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_access_token(self) -> Optional[str]:
        """Cached client-credentials token, refreshed shortly before expiry.

        Returns None once the provider has disabled itself.
        """
        if self._token and self._token.is_valid(self._clock()):
            return self._token.token

        async with self._token_lock:
            if self._token and self._token.is_valid(self._clock()):
                return self._token.token

            params = {
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'grant_type': 'client_credentials',
            }

            async def fetch():
                return await self.http.post_json(TWITCH_TOKEN_URL, params=params)

            data = await self._call('token', fetch)
            if data is None and self.disabled_reason is not None:
                return None
            data = data or {}
            token = data.get('access_token')
            if not token:
                raise ProviderError("IGDB token response had no access_token", self.name)
            expires_in = float(data.get('expires_in') or 0)
            self._token = AccessTokenCache(
                token=token,
                expires_at=self._clock() + max(0.0, expires_in - TOKEN_SAFETY_MARGIN),
            )
            logger.info(f"[IGDB] Obtained access token, valid for {int(expires_in)}s")
            return token

    async def _query(self, endpoint: str, body: str) -> List[Dict[str, Any]]:
        token = await self.get_access_token()
        if token is None:
            return []
        headers = {
            'Client-ID': self.client_id,
            'Authorization': f"Bearer {token}",
            'Accept': 'application/json',
            'Content-Type': 'text/plain',
        }

        async def execute():
            return await self.http.post_json(f"{IGDB_API_BASE}/{endpoint}", data=body, headers=headers)

        data = await self._call(endpoint, execute)
        return data if isinstance(data, list) else []

    def _to_search_result(self, game: Dict[str, Any]) -> GameSearchResult:
        release = game.get('first_release_date')
        return GameSearchResult(
            id=self.make_id(game['id']),
            title=game.get('name', ''),
            source=self.name,
            external_id=str(game['id']),
            steam_app_id=steam_id_from_external_games(game.get('external_games')),
            release_date=_format_timestamp(release),
        )

    async def _games_by_steam_id(self, steam_app_id: str) -> List[Dict[str, Any]]:
        body = (f'fields {GAME_FIELDS}; '
                f'where external_games.category = {STEAM_EXTERNAL_CATEGORY} '
                f'& external_games.uid = "{escape_query(str(steam_app_id))}"; limit 1;')
        return await self._query('games', body)

    async def search(self, title: str, steam_app_id: Optional[str] = None) -> List[GameSearchResult]:
        if not await self.is_available():
            return []

        if steam_app_id:
            games = await self._games_by_steam_id(steam_app_id)
            if games:
                logger.debug(f"[IGDB] Steam app {steam_app_id} -> {games[0].get('name')}")
                return [self._to_search_result(game) for game in games if game.get('id')]

        body = f'search "{escape_query(title)}"; fields {GAME_FIELDS}; limit 10;'
        games = await self._query('games', body)
        logger.debug(f"[IGDB] '{title}': {len(games)} results")
        return [self._to_search_result(game) for game in games if game.get('id')]

    async def _get_game(self, game_id: str) -> Optional[Dict[str, Any]]:
        native = self.parse_id(game_id)
        if not native or not native.isdigit():
            return None
        games = await self._query('games', f'fields {GAME_FIELDS}; where id = {native};')
        return games[0] if games else None

    async def get_description(self, game_id: str) -> Optional[GameDescription]:
        if not await self.is_available():
            return None
        game = await self._get_game(game_id)
        if not game:
            return None

        companies = game.get('involved_companies') or []
        developers = [c['company']['name'] for c in companies
                      if isinstance(c, dict) and c.get('developer') and isinstance(c.get('company'), dict)
                      and c['company'].get('name')]
        publishers = [c['company']['name'] for c in companies
                      if isinstance(c, dict) and c.get('publisher') and isinstance(c.get('company'), dict)
                      and c['company'].get('name')]
        category = GAME_CATEGORIES.get(game.get('category'))
        rating = game.get('rating')

        return GameDescription(
            description=sanitize_description(game.get('storyline') or game.get('summary')) or None,
            summary=sanitize_description(game.get('summary')) or None,
            release_date=_format_timestamp(game.get('first_release_date')),
            genres=names_of(game.get('genres')),
            developers=developers,
            publishers=publishers,
            categories=[category] if category else [],
            age_rating=format_age_rating(game.get('age_ratings')),
            rating=round(float(rating), 1) if rating is not None else None,
            platforms=names_of(game.get('platforms')),
        )

    async def get_artwork(self, game_id: str, steam_app_id: Optional[str] = None) -> Optional[GameArtwork]:
        if not await self.is_available():
            return None
        game = await self._get_game(game_id)
        if not game:
            return None

        cover = game.get('cover') if isinstance(game.get('cover'), dict) else {}
        artworks = [a.get('url') for a in game.get('artworks') or [] if isinstance(a, dict) and a.get('url')]
        screenshots = [image_url(s.get('url'), 't_screenshot_huge')
                       for s in game.get('screenshots') or [] if isinstance(s, dict) and s.get('url')]

        artwork = GameArtwork(
            boxart_url=image_url(cover.get('url'), 't_cover_big'),
            hero_url=image_url(artworks[0], 't_1080p') if artworks else None,
            screenshots=screenshots,
        )
        return None if artwork.is_empty() else artwork


def _format_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).date().isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None
