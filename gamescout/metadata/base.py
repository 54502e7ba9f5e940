"""
Base MetadataProvider class and the provider-agnostic result types.

Each external catalog (Steam, IGDB, RAWG, SteamGridDB) inherits from
MetadataProvider. Outbound calls go through the shared RateLimitCoordinator
under the provider's service tag, with network failures retried.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field, fields
from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import logging

from ..controllers.rate_limit import RateLimitCoordinator
from ..errors import AuthenticationError, ProviderDisabledError
from ..utils.http import HttpClient
from ..utils.retry import RetryPolicy, with_retry


logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == '' or value == [] or value == {}


class _Mergeable:
    """First non-empty value wins when merging partial records."""

    def merge(self, other: Optional['_Mergeable']) -> None:
        """Fill this record's empty fields from other; populated fields are kept."""
        if other is None:
            return
        for f in fields(self):
            if _is_empty(getattr(self, f.name)):
                value = getattr(other, f.name)
                if not _is_empty(value):
                    setattr(self, f.name, value)

    def is_empty(self) -> bool:
        return all(_is_empty(getattr(self, f.name)) for f in fields(self))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in names})


@dataclass
class GameSearchResult:
    """One search hit from a provider"""
    id: str  # provider-prefixed, e.g. 'rawg-3498'
    title: str
    source: str  # provider name
    external_id: Optional[str] = None
    steam_app_id: Optional[str] = None
    release_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GameDescription(_Mergeable):
    description: Optional[str] = None
    summary: Optional[str] = None
    release_date: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    developers: List[str] = field(default_factory=list)
    publishers: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    age_rating: Optional[str] = None
    rating: Optional[float] = None
    platforms: List[str] = field(default_factory=list)


@dataclass
class GameArtwork(_Mergeable):
    boxart_url: Optional[str] = None
    banner_url: Optional[str] = None
    logo_url: Optional[str] = None
    hero_url: Optional[str] = None
    icon_url: Optional[str] = None
    screenshots: List[str] = field(default_factory=list)
    boxart_resolution: Optional[Dict[str, int]] = None
    hero_resolution: Optional[Dict[str, int]] = None


@dataclass
class GameRecord:
    """Merged library entry for one scanned game"""
    id: str
    title: str
    source: str
    install_path: str
    exe_path: Optional[str] = None
    app_id: Optional[str] = None
    steam_app_id: Optional[str] = None
    matched: bool = False
    match_provider: Optional[str] = None
    match_id: Optional[str] = None
    match_confidence: float = 0.0
    match_reasons: List[str] = field(default_factory=list)
    is_demo: bool = False
    description: GameDescription = field(default_factory=GameDescription)
    artwork: GameArtwork = field(default_factory=GameArtwork)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetadataProvider(ABC):
    """
    Abstract base class for external metadata catalogs.

    Providers disable themselves after an authentication failure: the
    failing call raises AuthenticationError once, later calls return
    empty results without touching the network.
    """

    service_tag: str = ''
    max_concurrent: Optional[int] = None

    def __init__(self, coordinator: RateLimitCoordinator,
                 http: Optional[HttpClient] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        self.coordinator = coordinator
        self.http = http or HttpClient(self.name)
        self.retry_policy = retry_policy or RetryPolicy()
        self.disabled_reason: Optional[str] = None
        self._concurrency = asyncio.Semaphore(self.max_concurrent) if self.max_concurrent else None

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider identifier (e.g., 'igdb', 'rawg')"""
        pass

    def has_credentials(self) -> bool:
        """Whether the provider is configured; keyless providers return True."""
        return True

    async def is_available(self) -> bool:
        """
        Check whether the provider can be used.

        Returns:
            False when credentials are missing or the provider disabled itself.
        """
        return self.disabled_reason is None and self.has_credentials()

    def disable(self, reason: str) -> bool:
        """Disable the provider; returns False when it was already disabled."""
        if self.disabled_reason is not None:
            return False
        logger.warning(f"[{self.name}] Disabling provider: {reason}")
        self.disabled_reason = reason
        return True

    def make_id(self, native_id: Any) -> str:
        return f"{self.name}-{native_id}"

    def parse_id(self, game_id: str) -> Optional[str]:
        """Strip this provider's prefix; ids from other providers give None."""
        prefix = f"{self.name}-"
        if not game_id or not game_id.startswith(prefix):
            return None
        native = game_id[len(prefix):]
        return native or None

    async def _call(self, label: str, execute: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run one outbound request through the coordinator with retries.

        The disabled check runs again when the coordinator dispatches the
        request, so calls queued before an auth failure never reach the
        network. Only the call that disabled the provider raises
        AuthenticationError; the others return None.
        """
        if self.disabled_reason is not None:
            return None

        async def guarded():
            if self.disabled_reason is not None:
                raise ProviderDisabledError(f"{self.name} is disabled", self.name)
            try:
                return await execute()
            except AuthenticationError as e:
                if not self.disable(str(e)):
                    raise ProviderDisabledError(f"{self.name} is disabled", self.name) from e
                raise

        async def dispatch():
            if self._concurrency is not None:
                async with self._concurrency:
                    return await self.coordinator.queue_request(self.service_tag or self.name, guarded)
            return await self.coordinator.queue_request(self.service_tag or self.name, guarded)

        try:
            return await with_retry(dispatch, self.retry_policy, label=f"{self.name} {label}")
        except ProviderDisabledError:
            logger.debug(f"[{self.name}] Skipped {label}: provider disabled")
            return None

    @abstractmethod
    async def search(self, title: str, steam_app_id: Optional[str] = None) -> List[GameSearchResult]:
        """
        Search the catalog by title.

        Args:
            title: Game title to search for.
            steam_app_id: Optional Steam app id to narrow the search.

        Returns:
            List of GameSearchResult, empty when unavailable.
        """
        pass

    @abstractmethod
    async def get_description(self, game_id: str) -> Optional[GameDescription]:
        """Fetch description fields for one of this provider's ids."""
        pass

    @abstractmethod
    async def get_artwork(self, game_id: str, steam_app_id: Optional[str] = None) -> Optional[GameArtwork]:
        """Fetch artwork urls for one of this provider's ids."""
        pass

    async def close(self):
        await self.http.close()
