"""
Epic Games scanner.

Epic records installs as JSON .item manifests under the launcher's data
folder. Folders under the install root that no manifest covers are picked
up by executable discovery.
"""
import glob
import logging
import os
from typing import List, Optional

from .base import GameSource, ScannedGameResult, ScanStatus
from .executables import ExecutableScanner, clean_folder_title, find_executables, select_main_executable
from ..utils.manifests import ItemManifest, parse_item_manifest

logger = logging.getLogger(__name__)

LAUNCHER_FOLDER = 'Epic Games Launcher'


class EpicScanner(ExecutableScanner):
    """Epic Games Launcher installs"""

    skip_folders = (LAUNCHER_FOLDER, 'UnrealEngine', 'DirectXRedist')

    def __init__(self, manifests_path: Optional[str] = None):
        self.manifests_path = manifests_path

    @property
    def source(self) -> GameSource:
        return GameSource.EPIC

    def get_manifests_dir(self, root_path: str) -> str:
        if self.manifests_path:
            return self.manifests_path
        return os.path.join(root_path, LAUNCHER_FOLDER, 'Data', 'Manifests')

    def result_from_manifest(self, manifest: ItemManifest) -> Optional[ScannedGameResult]:
        exe_path = manifest.executable_path
        if not exe_path or not os.path.isfile(exe_path):
            executables = find_executables(manifest.install_location, self.exclusions)
            exe_path = select_main_executable(executables, manifest.install_location)
        if exe_path is None:
            logger.debug(f"[EpicScanner] No executable for {manifest.display_name}")
            return None

        return ScannedGameResult(
            source=GameSource.EPIC,
            original_name=manifest.display_name,
            install_path=manifest.install_location,
            exe_path=exe_path,
            app_id=manifest.catalog_item_id or manifest.app_name,
            title=manifest.display_name,
            status=ScanStatus.AMBIGUOUS,
        )

    def scan(self, root_path: str) -> List[ScannedGameResult]:
        results = []
        covered = set()

        manifests_dir = self.get_manifests_dir(root_path)
        if os.path.isdir(manifests_dir):
            for item_path in sorted(glob.glob(os.path.join(glob.escape(manifests_dir), '*.item'))):
                manifest = parse_item_manifest(item_path)
                if manifest is None:
                    continue
                key = os.path.normcase(manifest.install_location)
                if key in covered:
                    continue
                result = self.result_from_manifest(manifest)
                if result:
                    covered.add(key)
                    results.append(result)
        else:
            logger.debug(f"[EpicScanner] No manifest folder at {manifests_dir}")

        if os.path.isdir(root_path):
            for folder in self.iter_game_folders(root_path):
                if os.path.normcase(os.path.normpath(folder)) in covered:
                    continue
                result = self.scan_game_folder(folder)
                if result:
                    results.append(result)
        elif not results:
            logger.info(f"[EpicScanner] Epic path not found: {root_path}")

        logger.info(f"[EpicScanner] Found {len(results)} Epic games")
        return results
