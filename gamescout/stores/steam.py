"""
Steam library scanner.

Reads appmanifest_*.acf files from every Steam library folder and keeps
the titles that are fully installed and healthy.
"""
import glob
import logging
import os
import re
from enum import IntFlag
from typing import Any, Dict, List, Optional

from .base import Scanner, ScannedGameResult, GameSource, ScanStatus
from ..errors import ParseError
from ..utils.vdf import load_keyvalues_file, get_section, get_value, parse_library_folders

logger = logging.getLogger(__name__)

MANIFEST_NAME_RE = re.compile(r'^appmanifest_(\d+)\.acf$', re.IGNORECASE)

# Steam runtime and redistributables, never games
EXCLUDED_APP_IDS = {
    '228980',   # Steamworks Common Redistributables
    '1070560',  # Steam Linux Runtime
    '1391110',  # Steam Linux Runtime - Soldier
    '1493710',  # Proton Experimental
}


class SteamStateFlags(IntFlag):
    UPDATE_REQUIRED = 2
    FULLY_INSTALLED = 4
    FILES_MISSING = 32
    FILES_CORRUPT = 128
    UNINSTALLING = 2048
    DOWNLOADING = 1 << 20


PROBLEM_FLAGS = (
    SteamStateFlags.UPDATE_REQUIRED
    | SteamStateFlags.FILES_MISSING
    | SteamStateFlags.FILES_CORRUPT
    | SteamStateFlags.UNINSTALLING
    | SteamStateFlags.DOWNLOADING
)


def is_playable_state(state_flags: int) -> bool:
    """True when the manifest says fully installed with no pending work or damage."""
    if not state_flags & SteamStateFlags.FULLY_INSTALLED:
        return False
    return not state_flags & PROBLEM_FLAGS


def parse_app_manifest(path: str) -> Dict[str, Any]:
    """
    Load the AppState block of an appmanifest file.

    Manifests written without the AppState wrapper keep their fields at
    the top level; those are returned as they are.

    Raises:
        ParseError: file unreadable or nothing recovered from it.
    """
    try:
        data = load_keyvalues_file(path)
    except OSError as e:
        raise ParseError(f"Could not read manifest: {e}", path) from e

    state = get_section(data, 'AppState')
    if state:
        return state
    if not any(isinstance(value, str) for value in data.values()):
        raise ParseError("No AppState block", path)
    logger.debug(f"[SteamScanner] {os.path.basename(path)} has no AppState block, using top-level fields")
    return data


class SteamScanner(Scanner):
    """Manifest-backed scanner for Steam libraries"""

    @property
    def source(self) -> GameSource:
        return GameSource.STEAM

    def find_manifest_dirs(self, root_path: str) -> List[str]:
        """Every folder holding appmanifest files, starting with the root's own library."""
        libraries = [root_path]
        for vdf_path in (os.path.join(root_path, 'steamapps', 'libraryfolders.vdf'),
                         os.path.join(root_path, 'config', 'libraryfolders.vdf')):
            if not os.path.isfile(vdf_path):
                continue
            try:
                with open(vdf_path, 'r', encoding='utf-8', errors='replace') as f:
                    libraries.extend(parse_library_folders(f.read()))
            except OSError as e:
                logger.warning(f"[SteamScanner] Could not read {vdf_path}: {e}")

        manifest_dirs = []
        seen = set()
        for library in libraries:
            steamapps = os.path.join(library, 'steamapps')
            if os.path.isdir(steamapps):
                candidate = steamapps
            elif glob.glob(os.path.join(glob.escape(library), 'appmanifest_*.acf')):
                candidate = library
            else:
                continue
            key = os.path.normcase(os.path.realpath(candidate))
            if key not in seen:
                seen.add(key)
                manifest_dirs.append(candidate)
        return manifest_dirs

    def read_manifest(self, manifest_path: str) -> Optional[ScannedGameResult]:
        """Turn one manifest into a result, or None when it is rejected."""
        filename = os.path.basename(manifest_path)
        try:
            state = parse_app_manifest(manifest_path)
        except ParseError as e:
            logger.warning(f"[SteamScanner] Skipping {filename}: {e}")
            return None

        app_id = (get_value(state, 'appid') or '').strip()
        if not app_id.isdigit():
            match = MANIFEST_NAME_RE.match(filename)
            if not match:
                logger.warning(f"[SteamScanner] No app id in {filename}")
                return None
            app_id = match.group(1)
            logger.debug(f"[SteamScanner] Using app id {app_id} from file name {filename}")

        if app_id in EXCLUDED_APP_IDS:
            return None

        name = (get_value(state, 'name') or '').strip()
        if not name:
            logger.debug(f"[SteamScanner] Rejecting {app_id}: no name")
            return None

        manifest_dir = os.path.dirname(manifest_path)
        install_dir = (get_value(state, 'installdir') or '').strip()
        install_path = os.path.join(manifest_dir, 'common', install_dir) if install_dir else manifest_dir

        raw_flags = get_value(state, 'StateFlags')
        try:
            state_flags = int(raw_flags)
        except (TypeError, ValueError):
            state_flags = None

        if state_flags is None:
            # Truncated manifest: trust it only if the game folder is there
            if not install_dir or not os.path.isdir(install_path):
                logger.debug(f"[SteamScanner] Rejecting {app_id}: no StateFlags and no install folder")
                return None
        elif not is_playable_state(state_flags):
            logger.debug(f"[SteamScanner] Rejecting {app_id} ({name}): StateFlags={state_flags}")
            return None

        return ScannedGameResult(
            source=GameSource.STEAM,
            original_name=name,
            install_path=install_path,
            title=name,
            app_id=app_id,
            status=ScanStatus.READY,
        )

    def scan(self, root_path: str) -> List[ScannedGameResult]:
        if not os.path.isdir(root_path):
            logger.info(f"[SteamScanner] Steam path not found: {root_path}")
            return []

        games: Dict[str, ScannedGameResult] = {}
        for manifest_dir in self.find_manifest_dirs(root_path):
            pattern = os.path.join(glob.escape(manifest_dir), 'appmanifest_*.acf')
            for manifest_path in sorted(glob.glob(pattern)):
                result = self.read_manifest(manifest_path)
                if result and result.app_id not in games:
                    games[result.app_id] = result

        results = sorted(games.values(), key=lambda game: game.title.lower())
        logger.info(f"[SteamScanner] Found {len(results)} installed Steam games")
        return results
