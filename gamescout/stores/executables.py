"""
Executable discovery shared by the non-manifest scanners.

Game folders are walked to a fixed depth with an explicit stack. Helper
binaries (installers, uninstallers, launchers, crash reporters) are filtered
out by case-insensitive substring match on the file name.
"""
import logging
import os
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .base import Scanner, ScannedGameResult, ScanStatus

logger = logging.getLogger(__name__)

EXECUTABLE_EXTENSIONS = ('.exe',)
MAX_SCAN_DEPTH = 3

COMMON_EXCLUSIONS = (
    'uninstall',
    'unins',
    'setup',
    'installer',
    'launcher',
    'updater',
    'redist',
    'bootstrapper',
    'gamelaunchhelper',
    'crashreport',
    'crashhandler',
    'dxsetup',
)

_VERSION_SUFFIX_RE = re.compile(r'[\s_\-]+v?\d+(?:\.\d+)+[a-z]?$', re.IGNORECASE)


def is_excluded(filename: str, exclusions: Sequence[str] = COMMON_EXCLUSIONS) -> bool:
    """Check a file name against the helper-binary denylist."""
    lowered = filename.lower()
    return any(pattern in lowered for pattern in exclusions)


def list_dir(path: str) -> List[Tuple[str, str, bool]]:
    """List (name, path, is_dir) sorted by name; unreadable folders give []."""
    try:
        with os.scandir(path) as it:
            entries = []
            for entry in it:
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                entries.append((entry.name, entry.path, is_dir))
    except OSError as e:
        logger.debug(f"[Executables] Skipping unreadable folder {path}: {e}")
        return []
    entries.sort(key=lambda item: item[0].lower())
    return entries


def find_executables(root: str,
                     exclusions: Sequence[str] = COMMON_EXCLUSIONS,
                     max_depth: int = MAX_SCAN_DEPTH) -> List[str]:
    """
    Collect executables under root, depth-first in name order.

    Files directly in root are depth 0; folders are descended into while
    their depth is below max_depth.

    Returns:
        Executable paths in traversal order.
    """
    found = []
    stack = [(path, is_dir, 0) for _, path, is_dir in reversed(list_dir(root))]

    while stack:
        path, is_dir, depth = stack.pop()
        if is_dir:
            if depth < max_depth:
                children = list_dir(path)
                stack.extend((child, child_is_dir, depth + 1) for _, child, child_is_dir in reversed(children))
            continue

        filename = os.path.basename(path)
        if not filename.lower().endswith(EXECUTABLE_EXTENSIONS):
            continue
        if is_excluded(filename, exclusions):
            continue
        found.append(path)

    return found


def select_main_executable(candidates: Sequence[str], folder: str) -> Optional[str]:
    """Prefer the executable named after its game folder, else the first one found."""
    if not candidates:
        return None
    folder_name = os.path.basename(os.path.normpath(folder)).lower()
    for candidate in candidates:
        stem = os.path.splitext(os.path.basename(candidate))[0].lower()
        if stem == folder_name:
            return candidate
    return candidates[0]


def clean_folder_title(folder_name: str) -> str:
    """Turn an install folder name into a display title.

    Examples:
        "Hollow_Knight" -> "Hollow Knight"
        "Celeste v1.4.0.0" -> "Celeste"
        "Portal 2" -> "Portal 2"
    """
    title = folder_name.replace('_', ' ').strip()
    title = _VERSION_SUFFIX_RE.sub('', title)
    title = re.sub(r'\s+', ' ', title).strip()
    return title or folder_name


def derive_package_title(package_name: str) -> str:
    """Derive a title from a Store package folder name.

    The name is split on '_' (version, architecture and publisher hash
    follow the first segment) and the publisher prefix before the last
    '.' is dropped.

    Examples:
        "Microsoft.MinecraftUWP_1.0.0.0_x64__8wekyb3d8bbwe" -> "MinecraftUWP"
        "Publisher.Game_1.2.3.0_neutral__abc" -> "Game"
    """
    head = package_name.split('_')[0]
    parts = [part for part in head.split('.') if part]
    return parts[-1] if parts else package_name


class ExecutableScanner(Scanner):
    """
    Scanner for launchers whose games are plain folders under one root.

    Subclasses override resolve_games_root(), skip_folders and exclusions.
    """

    skip_folders: Tuple[str, ...] = ()
    extra_exclusions: Tuple[str, ...] = ()

    @property
    def exclusions(self) -> Tuple[str, ...]:
        return COMMON_EXCLUSIONS + self.extra_exclusions

    def resolve_games_root(self, root_path: str) -> Optional[str]:
        return root_path if os.path.isdir(root_path) else None

    def iter_game_folders(self, games_root: str) -> Iterable[str]:
        skipped = {name.lower() for name in self.skip_folders}
        for name, path, is_dir in list_dir(games_root):
            if is_dir and name.lower() not in skipped:
                yield path

    def scan_game_folder(self, folder: str) -> Optional[ScannedGameResult]:
        executables = find_executables(folder, self.exclusions)
        exe_path = select_main_executable(executables, folder)
        if exe_path is None:
            logger.debug(f"[{self.name}] No executable in {folder}")
            return None
        folder_name = os.path.basename(os.path.normpath(folder))
        return ScannedGameResult(
            source=self.source,
            original_name=folder_name,
            install_path=folder,
            exe_path=exe_path,
            title=clean_folder_title(folder_name),
            status=ScanStatus.AMBIGUOUS,
        )

    def scan(self, root_path: str) -> List[ScannedGameResult]:
        games_root = self.resolve_games_root(root_path)
        if not games_root:
            logger.info(f"[{self.name}] Games folder not found under {root_path}")
            return []

        results = []
        for folder in self.iter_game_folders(games_root):
            result = self.scan_game_folder(folder)
            if result:
                results.append(result)

        logger.info(f"[{self.name}] Found {len(results)} games in {games_root}")
        return results
