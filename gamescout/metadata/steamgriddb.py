"""SteamGridDB metadata provider (artwork only).

Talks to the v2 REST API directly so HTTP status codes reach the shared
error mapping (auth failures disable the provider, 429 is not retried).
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import GameArtwork, GameDescription, GameSearchResult, MetadataProvider
from ..controllers.rate_limit import RateLimitCoordinator
from ..errors import AuthenticationError, ProviderError
from ..utils.http import HttpClient
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

SGDB_API_BASE = "https://www.steamgriddb.com/api/v2"

BOXART_DIMENSIONS = "600x900,342x482,660x930"
BANNER_DIMENSIONS = "920x430,460x215"


def select_best_image(images: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Select the best image from a SteamGridDB asset list.

    NSFW, humor and epilepsy-flagged assets are dropped. Then:
    1. Locked (curated) images first
    2. Highest score
    3. Most net upvotes
    Ties keep API order.
    """
    candidates = [
        img for img in images or []
        if isinstance(img, dict) and img.get('url')
        and not img.get('nsfw') and not img.get('humor') and not img.get('epilepsy')
    ]
    if not candidates:
        return None
    return sorted(
        candidates,
        key=lambda img: (
            not img.get('lock', False),
            -(img.get('score') or 0),
            -((img.get('upvotes') or 0) - (img.get('downvotes') or 0)),
        )
    )[0]


def _resolution(image: Optional[Dict[str, Any]]) -> Optional[Dict[str, int]]:
    if image and image.get('width') and image.get('height'):
        return {'width': int(image['width']), 'height': int(image['height'])}
    return None


class SteamGridDBProvider(MetadataProvider):
    """SteamGridDB community artwork"""

    service_tag = 'steamgriddb'

    def __init__(self, coordinator: RateLimitCoordinator,
                 credentials: Optional[Dict[str, str]] = None,
                 http: Optional[HttpClient] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        super().__init__(coordinator, http, retry_policy)
        self.api_key = (credentials or {}).get('api_key')

    @property
    def name(self) -> str:
        return 'steamgriddb'

    def has_credentials(self) -> bool:
        return bool(self.api_key)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {'Authorization': f"Bearer {self.api_key}"}

        async def execute():
            return await self.http.get_json(f"{SGDB_API_BASE}{path}", params=params, headers=headers)

        data = await self._call(path, execute)
        if not isinstance(data, dict) or not data.get('success', True):
            return None
        return data.get('data')

    def _to_search_result(self, game: Dict[str, Any], steam_app_id: Optional[str] = None) -> GameSearchResult:
        release = game.get('release_date')
        release_date = None
        if isinstance(release, (int, float)) and release > 0:
            release_date = datetime.fromtimestamp(release, tz=timezone.utc).date().isoformat()
        return GameSearchResult(
            id=self.make_id(game['id']),
            title=game.get('name', ''),
            source=self.name,
            external_id=str(game['id']),
            steam_app_id=steam_app_id,
            release_date=release_date,
        )

    async def search(self, title: str, steam_app_id: Optional[str] = None) -> List[GameSearchResult]:
        if not await self.is_available():
            return []

        if steam_app_id:
            game = await self._get(f"/games/steam/{quote(str(steam_app_id))}")
            if isinstance(game, dict) and game.get('id'):
                return [self._to_search_result(game, str(steam_app_id))]

        games = await self._get(f"/search/autocomplete/{quote(title, safe='')}") or []
        results = [self._to_search_result(game) for game in games if isinstance(game, dict) and game.get('id')]
        logger.debug(f"[SteamGridDB] '{title}': {len(results)} results")
        return results

    async def get_description(self, game_id: str) -> Optional[GameDescription]:
        # SteamGridDB only hosts artwork
        return None

    async def _best(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        images = await self._get(path, params) or []
        return select_best_image(images if isinstance(images, list) else [])

    async def get_artwork(self, game_id: str, steam_app_id: Optional[str] = None) -> Optional[GameArtwork]:
        if not await self.is_available():
            return None
        native = self.parse_id(game_id)
        if not native:
            return None

        requests = {
            'boxart': (f"/grids/game/{native}", {'dimensions': BOXART_DIMENSIONS}),
            'banner': (f"/grids/game/{native}", {'dimensions': BANNER_DIMENSIONS}),
            'hero': (f"/heroes/game/{native}", None),
            'logo': (f"/logos/game/{native}", None),
            'icon': (f"/icons/game/{native}", None),
        }
        outcomes = await asyncio.gather(
            *(self._best(path, params) for path, params in requests.values()),
            return_exceptions=True,
        )

        images: Dict[str, Optional[Dict[str, Any]]] = {}
        for kind, outcome in zip(requests, outcomes):
            if isinstance(outcome, AuthenticationError):
                raise outcome
            if isinstance(outcome, ProviderError):
                logger.warning(f"[SteamGridDB] {kind} lookup for {native} failed: {outcome}")
                outcome = None
            elif isinstance(outcome, BaseException):
                raise outcome
            images[kind] = outcome

        boxart, banner, hero, logo, icon = (images[kind] for kind in requests)

        artwork = GameArtwork(
            boxart_url=boxart.get('url') if boxart else None,
            banner_url=banner.get('url') if banner else None,
            hero_url=hero.get('url') if hero else None,
            logo_url=logo.get('url') if logo else None,
            icon_url=icon.get('url') if icon else None,
            boxart_resolution=_resolution(boxart),
            hero_resolution=_resolution(hero),
        )
        return None if artwork.is_empty() else artwork
