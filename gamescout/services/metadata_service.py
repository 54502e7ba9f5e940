"""
MetadataService - resolves scanned games into library records.

Responsibilities:
- Search providers in priority order and accept the first acceptable match
- Collect descriptions and artwork from every available provider
- Merge partial results, first non-empty field wins in priority order
- Run artwork through the image cache and remember resolved metadata
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..cache.image_cache import ImageCache
from ..cache.metadata_cache import MetadataCache, generate_key
from ..metadata.base import GameArtwork, GameDescription, GameRecord, GameSearchResult, MetadataProvider
from ..stores.base import GameSource, ScannedGameResult, ScanStatus
from ..utils.matching import MatchResult, find_best_match, strip_demo_indicator

logger = logging.getLogger(__name__)

ARTWORK_IMAGE_FIELDS = (
    ('boxart_url', 'boxart'),
    ('banner_url', 'banner'),
    ('logo_url', 'logo'),
    ('hero_url', 'hero'),
    ('icon_url', 'icon'),
)


class MetadataService:
    """Fans scanned games out to metadata providers and merges the answers."""

    def __init__(self, providers: Sequence[MetadataProvider],
                 image_cache: Optional[ImageCache] = None,
                 metadata_cache: Optional[MetadataCache] = None):
        """
        Args:
            providers: Providers in priority order (first wins on merge)
            image_cache: Optional collaborator that stores artwork locally
            metadata_cache: Optional TTL cache of resolved metadata
        """
        self.providers = list(providers)
        self.image_cache = image_cache
        self.metadata_cache = metadata_cache

    async def available_providers(self) -> List[MetadataProvider]:
        available = []
        for provider in self.providers:
            if await provider.is_available():
                available.append(provider)
        return available

    async def _search_provider(self, provider: MetadataProvider, title: str,
                               steam_app_id: Optional[str]) -> List[GameSearchResult]:
        try:
            return await provider.search(title, steam_app_id)
        except Exception as e:
            logger.warning(f"[Metadata] {provider.name} search for '{title}' failed: {e}")
            return []

    async def search_all(self, title: str, steam_app_id: Optional[str] = None) -> List[GameSearchResult]:
        """Concatenated search results from every available provider, in priority order."""
        results = []
        for provider in await self.available_providers():
            results.extend(await self._search_provider(provider, title, steam_app_id))
        return results

    async def _match_on(self, provider: MetadataProvider, titles: Sequence[str],
                        external_id: Optional[str], source: Optional[str]) -> Optional[MatchResult]:
        for title in titles:
            results = await self._search_provider(provider, title, external_id)
            if not results:
                continue
            match = find_best_match(title, results, external_id, source)
            if match:
                logger.debug(f"[Metadata] {provider.name}: '{title}' -> '{match.candidate.title}' "
                             f"({match.confidence:.2f}: {', '.join(match.reasons)})")
                return match
        return None

    async def find_match(self, scanned: ScannedGameResult,
                         providers: Optional[List[MetadataProvider]] = None
                         ) -> Optional[Tuple[MetadataProvider, MatchResult]]:
        """
        Search providers in priority order until one returns an acceptable match.

        Returns:
            (provider, match) or None when no provider had an acceptable candidate.
        """
        providers = providers if providers is not None else await self.available_providers()
        external_id = scanned.app_id if scanned.source == GameSource.STEAM else None
        titles = [scanned.title]
        stripped, is_demo = strip_demo_indicator(scanned.title)
        if is_demo:
            titles.append(stripped)

        for provider in providers:
            match = await self._match_on(provider, titles, external_id, scanned.source.value)
            if match:
                return provider, match
        logger.info(f"[Metadata] No acceptable match for '{scanned.title}'")
        return None

    async def _collect(self, provider: MetadataProvider, game_id: str,
                       steam_app_id: Optional[str]) -> Tuple[Optional[GameDescription], Optional[GameArtwork]]:
        description = artwork = None
        try:
            description = await provider.get_description(game_id)
        except Exception as e:
            logger.warning(f"[Metadata] {provider.name} description for {game_id} failed: {e}")
        try:
            artwork = await provider.get_artwork(game_id, steam_app_id)
        except Exception as e:
            logger.warning(f"[Metadata] {provider.name} artwork for {game_id} failed: {e}")
        return description, artwork

    async def _fetch_metadata(self, scanned: ScannedGameResult, providers: List[MetadataProvider],
                              matched_provider: MetadataProvider,
                              match: MatchResult) -> Tuple[GameDescription, GameArtwork]:
        title = scanned.title
        steam_app_id = match.candidate.steam_app_id or (
            scanned.app_id if scanned.source == GameSource.STEAM else None)
        description = GameDescription()
        artwork = GameArtwork()

        for provider in providers:
            if provider is matched_provider:
                game_id = match.candidate.id
            else:
                secondary = await self._match_on(provider, [title, match.candidate.title],
                                                 steam_app_id, scanned.source.value)
                if secondary is None:
                    continue
                game_id = secondary.candidate.id

            if not await provider.is_available():
                continue
            provider_description, provider_artwork = await self._collect(provider, game_id, steam_app_id)
            description.merge(provider_description)
            artwork.merge(provider_artwork)

        return description, artwork

    async def _apply_image_cache(self, record: GameRecord) -> None:
        if self.image_cache is None:
            return
        for field_name, image_type in ARTWORK_IMAGE_FIELDS:
            url = getattr(record.artwork, field_name)
            if url:
                setattr(record.artwork, field_name,
                        await self.image_cache.cache_image(url, record.id, image_type))

    def _record_for(self, scanned: ScannedGameResult) -> GameRecord:
        return GameRecord(
            id=scanned.uuid,
            title=scanned.title,
            source=scanned.source.value,
            install_path=scanned.install_path,
            exe_path=scanned.exe_path,
            app_id=scanned.app_id,
            steam_app_id=scanned.app_id if scanned.source == GameSource.STEAM else None,
            is_demo=strip_demo_indicator(scanned.title)[1],
        )

    @staticmethod
    def _mark_matched(scanned: ScannedGameResult) -> None:
        if scanned.status in (ScanStatus.PENDING, ScanStatus.SCANNING, ScanStatus.AMBIGUOUS):
            scanned.status = ScanStatus.MATCHED

    def _apply_cached(self, record: GameRecord, cached: Dict[str, Any]) -> None:
        record.matched = True
        record.title = cached.get('title') or record.title
        record.steam_app_id = cached.get('steam_app_id') or record.steam_app_id
        record.match_provider = cached.get('match_provider')
        record.match_id = cached.get('match_id')
        record.match_confidence = cached.get('match_confidence', 0.0)
        record.match_reasons = list(cached.get('match_reasons') or [])
        record.description = GameDescription.from_dict(cached.get('description'))
        record.artwork = GameArtwork.from_dict(cached.get('artwork'))

    async def resolve(self, scanned: ScannedGameResult) -> GameRecord:
        """
        Resolve one scanned game into a merged GameRecord.

        Never raises for provider failures: an unmatched game comes back
        with matched=False and empty metadata.
        """
        record = self._record_for(scanned)
        external_id = record.steam_app_id
        cache_key = generate_key(scanned.title, external_id)

        cached = self.metadata_cache.get(cache_key) if self.metadata_cache else None
        if cached:
            logger.debug(f"[Metadata] Cache hit for '{scanned.title}'")
            self._apply_cached(record, cached)
            self._mark_matched(scanned)
            await self._apply_image_cache(record)
            return record

        providers = await self.available_providers()
        if scanned.status == ScanStatus.PENDING:
            scanned.status = ScanStatus.SCANNING
        found = await self.find_match(scanned, providers)
        if found is None:
            if scanned.status == ScanStatus.SCANNING:
                scanned.status = ScanStatus.AMBIGUOUS
            return record

        matched_provider, match = found
        candidate: GameSearchResult = match.candidate
        record.matched = True
        record.title = candidate.title or record.title
        record.steam_app_id = candidate.steam_app_id or record.steam_app_id
        record.match_provider = matched_provider.name
        record.match_id = candidate.id
        record.match_confidence = match.confidence
        record.match_reasons = list(match.reasons)
        record.description, record.artwork = await self._fetch_metadata(
            scanned, providers, matched_provider, match)
        self._mark_matched(scanned)

        if self.metadata_cache is not None:
            self.metadata_cache.set(cache_key, {
                'title': record.title,
                'steam_app_id': record.steam_app_id,
                'match_provider': record.match_provider,
                'match_id': record.match_id,
                'match_confidence': record.match_confidence,
                'match_reasons': record.match_reasons,
                'description': record.description.to_dict(),
                'artwork': record.artwork.to_dict(),
            })

        await self._apply_image_cache(record)
        logger.info(f"[Metadata] Resolved '{scanned.title}' via {matched_provider.name} "
                    f"({match.confidence:.2f})")
        return record

    async def resolve_all(self, results: Sequence[ScannedGameResult], concurrency: int = 4) -> List[GameRecord]:
        """Resolve many scans; the coordinator still throttles every outbound call."""
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def resolve_one(scanned: ScannedGameResult) -> GameRecord:
            async with semaphore:
                try:
                    return await self.resolve(scanned)
                except Exception as e:
                    logger.error(f"[Metadata] Resolving '{scanned.title}' failed: {e}", exc_info=True)
                    scanned.fail(str(e))
                    return self._record_for(scanned)

        records = await asyncio.gather(*(resolve_one(scanned) for scanned in results))
        matched = sum(1 for record in records if record.matched)
        logger.info(f"[Metadata] {matched}/{len(records)} games matched")
        return list(records)
