"""
Xbox / Microsoft Store scanner.

Two layouts are covered: Store packages under WindowsApps (one folder per
package, executables at the top level) and the XboxGames folder used by
the Xbox app, where each game keeps its binaries under Content/.
"""
import logging
import os
from typing import List, Optional

from .base import GameSource, ScannedGameResult, ScanStatus
from .executables import (
    ExecutableScanner,
    list_dir,
    derive_package_title,
    find_executables,
    select_main_executable,
)

logger = logging.getLogger(__name__)

# Runtime and framework packages that ship executables but are not games
FRAMEWORK_PACKAGE_PREFIXES = (
    'microsoft.vclibs',
    'microsoft.net',
    'microsoft.ui.xaml',
    'microsoft.directx',
    'microsoft.windowsappruntime',
    'microsoft.services.store',
    'microsoft.xboxidentityprovider',
    'microsoft.gamingservices',
    'microsoft.xboxgamingoverlay',
    'microsoft.gamingapp',
    'deleted',
)


class XboxScanner(ExecutableScanner):
    """Microsoft Store packages and Xbox app installs"""

    @property
    def source(self) -> GameSource:
        return GameSource.XBOX

    def _find_layout(self, root_path: str, folder_name: str) -> Optional[str]:
        if os.path.basename(os.path.normpath(root_path)).lower() == folder_name.lower():
            return root_path if os.path.isdir(root_path) else None
        candidate = os.path.join(root_path, folder_name)
        return candidate if os.path.isdir(candidate) else None

    def scan_package(self, package_dir: str) -> Optional[ScannedGameResult]:
        package_name = os.path.basename(os.path.normpath(package_dir))
        if package_name.lower().startswith(FRAMEWORK_PACKAGE_PREFIXES):
            return None

        executables = find_executables(package_dir, self.exclusions, max_depth=0)
        title = derive_package_title(package_name)
        exe_path = select_main_executable(executables, os.path.join(package_dir, title))
        if exe_path is None:
            return None

        return ScannedGameResult(
            source=GameSource.XBOX,
            original_name=package_name,
            install_path=package_dir,
            exe_path=exe_path,
            title=title,
            status=ScanStatus.AMBIGUOUS,
        )

    def scan(self, root_path: str) -> List[ScannedGameResult]:
        results = []

        windows_apps = self._find_layout(root_path, 'WindowsApps')
        if windows_apps:
            for _, path, is_dir in list_dir(windows_apps):
                if is_dir:
                    result = self.scan_package(path)
                    if result:
                        results.append(result)

        xbox_games = self._find_layout(root_path, 'XboxGames')
        if xbox_games:
            for folder in self.iter_game_folders(xbox_games):
                result = self.scan_game_folder(folder)
                if result:
                    results.append(result)

        if not windows_apps and not xbox_games:
            logger.info(f"[XboxScanner] No WindowsApps or XboxGames folder under {root_path}")
            return []

        logger.info(f"[XboxScanner] Found {len(results)} Xbox games")
        return results
