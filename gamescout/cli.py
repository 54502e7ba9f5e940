"""
Command line entry point.

Usage:
  gamescout scan                 # print scan results as JSON
  gamescout resolve              # scan, then resolve metadata for every game
  gamescout --config settings.json -v resolve --no-images
  gamescout launch TITLE         # start an installed game
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from .cache.image_cache import LocalImageCache
from .cache.metadata_cache import MetadataCache
from .config import CredentialStore, LauncherConfig, Settings, load_settings
from .controllers.rate_limit import RateLimitCoordinator
from .errors import GameScoutError, PathNotFoundError
from .metadata import IGDBProvider, MetadataProvider, RAWGProvider, SteamGridDBProvider, SteamProvider
from .services.launch_service import build_launch_action, launch
from .services.metadata_service import MetadataService
from .stores import create_default_manager
from .stores.base import ScannedGameResult
from .utils.matching import normalize_title
from .utils.paths import default_launcher_paths

logger = logging.getLogger("gamescout")

PROVIDER_CLASSES = {
    'steam': SteamProvider,
    'igdb': IGDBProvider,
    'rawg': RAWGProvider,
    'steamgriddb': SteamGridDBProvider,
}


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def load_config(path: Optional[str]) -> Settings:
    """Settings from an explicit --config path, or the default location."""
    if path and not os.path.isfile(path):
        raise PathNotFoundError(f"Settings file not found: {path}")
    return load_settings(path)


def launchers_for(settings: Settings) -> List[LauncherConfig]:
    """Configured launchers, or the detected defaults when none are configured."""
    if settings.launchers:
        return settings.enabled_launchers()
    detected = [LauncherConfig(id=source, path=path) for source, path in default_launcher_paths().items()]
    logger.info(f"[CLI] No launchers configured, using {len(detected)} detected paths")
    return detected


def build_providers(settings: Settings, coordinator: RateLimitCoordinator,
                    credentials: Optional[CredentialStore] = None) -> List[MetadataProvider]:
    """Instantiate providers in the configured priority order."""
    credentials = credentials or CredentialStore(settings)
    providers = []
    for name in settings.provider_priority:
        cls = PROVIDER_CLASSES.get(name)
        if cls is None:
            logger.warning(f"[CLI] Unknown metadata provider '{name}' in provider_priority")
            continue
        if cls is SteamProvider:
            providers.append(cls(coordinator))
        else:
            providers.append(cls(coordinator, credentials=credentials.get_credentials(name)))
    return providers


async def run_scan(settings: Settings) -> List[dict]:
    manager = create_default_manager()
    results = await manager.scan_all(launchers_for(settings))
    return [result.to_dict() for result in results]


async def run_resolve(settings: Settings, use_images: bool = True) -> List[dict]:
    manager = create_default_manager()
    scanned = await manager.scan_all(launchers_for(settings))

    coordinator = RateLimitCoordinator()
    providers = build_providers(settings, coordinator)
    image_cache = LocalImageCache() if use_images else None
    metadata_cache = MetadataCache.default()
    service = MetadataService(providers, image_cache=image_cache, metadata_cache=metadata_cache)

    try:
        records = await service.resolve_all(scanned)
        metadata_cache.save()
        return [record.to_dict() for record in records]
    finally:
        for provider in providers:
            await provider.close()
        if image_cache is not None:
            await image_cache.close()
        await coordinator.close()


async def run_launch(settings: Settings, title: str) -> ScannedGameResult:
    """Scan, then pick the installed game whose title matches."""
    manager = create_default_manager()
    scanned = await manager.scan_all(launchers_for(settings))
    wanted = normalize_title(title)
    matches = [game for game in scanned if normalize_title(game.title) == wanted]
    if not matches:
        raise GameScoutError(f"No installed game titled '{title}'")
    if len(matches) > 1:
        sources = ', '.join(game.source.value for game in matches)
        logger.info(f"[CLI] '{title}' is installed from {sources}, using {matches[0].source.value}")
    return matches[0]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gamescout", description="Scan game launchers and resolve metadata")
    parser.add_argument("--config", help="Path to settings JSON (defaults to the data directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("scan", help="Scan configured launchers and print the results")
    resolve = subparsers.add_parser("resolve", help="Scan and resolve metadata for every game")
    resolve.add_argument("--no-images", action="store_true", help="Do not download artwork")
    launch_parser = subparsers.add_parser("launch", help="Start an installed game by title")
    launch_parser.add_argument("title", help="Game title as shown by 'scan'")
    launch_parser.add_argument("--dry-run", action="store_true", help="Print the launch action without running it")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = load_config(args.config)
        if args.command == "scan":
            output = asyncio.run(run_scan(settings))
        elif args.command == "launch":
            game = asyncio.run(run_launch(settings, args.title))
            action = build_launch_action(game)
            if action is None:
                return 1
            output = {'title': game.title, 'source': game.source.value,
                      'kind': action.kind, 'target': action.target}
            if not args.dry_run and not launch(action):
                return 1
        else:
            output = asyncio.run(run_resolve(settings, use_images=not args.no_images))
    except GameScoutError as e:
        logger.error(f"[CLI] {e}")
        return 1

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
