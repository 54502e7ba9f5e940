"""RAWG metadata provider.

Search is /games?search=..., details come from /games/{id}. Detail
responses are kept in memory so description and artwork share one fetch.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from .base import GameArtwork, GameDescription, GameSearchResult, MetadataProvider
from ..controllers.rate_limit import RateLimitCoordinator
from ..errors import AuthenticationError, ProviderError
from ..utils.http import HttpClient
from ..utils.metadata import names_of, sanitize_description
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

RAWG_API_BASE = "https://api.rawg.io/api"
RAWG_PAGE_SIZE = 20
RAWG_BACKGROUND_RESOLUTION = {'width': 1920, 'height': 1080}


def _release_date(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10]).isoformat()
    except ValueError:
        logger.debug(f"[RAWG] Could not parse release date: {value}")
        return None


class RAWGProvider(MetadataProvider):
    """RAWG video game database"""

    service_tag = 'rawg'
    max_concurrent = 2

    def __init__(self, coordinator: RateLimitCoordinator,
                 credentials: Optional[Dict[str, str]] = None,
                 http: Optional[HttpClient] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        super().__init__(coordinator, http, retry_policy)
        self.api_key = (credentials or {}).get('api_key')
        self._details: Dict[str, Dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return 'rawg'

    def has_credentials(self) -> bool:
        return bool(self.api_key)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        query = {'key': self.api_key}
        query.update(params or {})

        async def execute():
            return await self.http.get_json(f"{RAWG_API_BASE}{path}", params=query)

        return await self._call(path, execute)

    async def search(self, title: str, steam_app_id: Optional[str] = None) -> List[GameSearchResult]:
        if not await self.is_available():
            return []

        data = await self._get('/games', {'search': title, 'page_size': RAWG_PAGE_SIZE}) or {}
        results = []
        for game in data.get('results') or []:
            if not isinstance(game, dict) or not game.get('id'):
                continue
            results.append(GameSearchResult(
                id=self.make_id(game['id']),
                title=game.get('name', ''),
                source=self.name,
                external_id=str(game['id']),
                release_date=_release_date(game.get('released')),
            ))
        logger.debug(f"[RAWG] '{title}': {len(results)} results")
        return results

    async def _get_details(self, game_id: str) -> Optional[Dict[str, Any]]:
        native = self.parse_id(game_id)
        if not native or not native.isdigit():
            return None
        if native not in self._details:
            data = await self._get(f"/games/{native}")
            if not isinstance(data, dict):
                return None
            self._details[native] = data
        return self._details[native]

    async def get_description(self, game_id: str) -> Optional[GameDescription]:
        if not await self.is_available():
            return None
        game = await self._get_details(game_id)
        if not game:
            return None

        if game.get('metacritic') is not None:
            rating = float(game['metacritic'])
        elif game.get('rating') is not None:
            # RAWG ratings are 0-5
            rating = round(float(game['rating']) * 20, 1)
        else:
            rating = None

        esrb = game.get('esrb_rating') if isinstance(game.get('esrb_rating'), dict) else {}
        platforms = names_of([p.get('platform') for p in game.get('platforms') or [] if isinstance(p, dict)])

        description = GameDescription(
            description=sanitize_description(game.get('description') or game.get('description_raw')) or None,
            summary=sanitize_description(game.get('description_raw'), max_length=500) or None,
            release_date=_release_date(game.get('released')),
            genres=names_of(game.get('genres')),
            developers=names_of(game.get('developers')),
            publishers=names_of(game.get('publishers')),
            categories=names_of(game.get('tags')),
            age_rating=esrb.get('name'),
            rating=rating,
            platforms=platforms,
        )
        return None if description.is_empty() else description

    async def get_artwork(self, game_id: str, steam_app_id: Optional[str] = None) -> Optional[GameArtwork]:
        if not await self.is_available():
            return None
        game = await self._get_details(game_id)
        if not game:
            return None

        background = game.get('background_image')
        artwork = GameArtwork(
            banner_url=background,
            hero_url=game.get('background_image_additional') or background,
            hero_resolution=dict(RAWG_BACKGROUND_RESOLUTION) if background else None,
        )

        try:
            shots = await self._get(f"/games/{self.parse_id(game_id)}/screenshots") or {}
        except AuthenticationError:
            raise
        except ProviderError as e:
            logger.warning(f"[RAWG] Screenshots for {game_id} unavailable: {e}")
            shots = {}
        artwork.screenshots = [s['image'] for s in shots.get('results') or []
                               if isinstance(s, dict) and s.get('image')]
        return None if artwork.is_empty() else artwork
