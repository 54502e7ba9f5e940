"""
GOG scanner.

GOG Galaxy installs each game in its own folder, usually with a
goggame-<id>.info JSON file naming the game and its primary executable.
"""
import glob
import json
import logging
import os
from typing import Any, Dict, Optional

from .base import GameSource, ScannedGameResult, ScanStatus
from .executables import ExecutableScanner

logger = logging.getLogger(__name__)


def read_goggame_info(folder: str) -> Optional[Dict[str, Any]]:
    """Load the first goggame-*.info file in a game folder."""
    for info_path in sorted(glob.glob(os.path.join(glob.escape(folder), 'goggame-*.info'))):
        try:
            with open(info_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.debug(f"[GOGScanner] Unreadable {info_path}: {e}")
            continue
        if isinstance(data, dict):
            return data
    return None


def primary_task_path(info: Dict[str, Any]) -> Optional[str]:
    for task in info.get('playTasks') or []:
        if isinstance(task, dict) and task.get('isPrimary') and task.get('path'):
            return task['path']
    return None


class GOGScanner(ExecutableScanner):
    """GOG Galaxy and offline installer games"""

    @property
    def source(self) -> GameSource:
        return GameSource.GOG

    def resolve_games_root(self, root_path: str) -> Optional[str]:
        if os.path.basename(os.path.normpath(root_path)).lower().endswith('games'):
            return root_path if os.path.isdir(root_path) else None
        for candidate in (os.path.join(root_path, 'Games'), os.path.join(root_path, 'Galaxy', 'Games')):
            if os.path.isdir(candidate):
                return candidate
        return None

    def scan_game_folder(self, folder: str) -> Optional[ScannedGameResult]:
        result = super().scan_game_folder(folder)
        info = read_goggame_info(folder)
        if info is None:
            return result

        name = (info.get('name') or '').strip()
        task_path = primary_task_path(info)
        exe_path = os.path.join(folder, task_path) if task_path else None
        if exe_path and not os.path.isfile(exe_path):
            exe_path = None

        if result is None:
            if exe_path is None:
                return None
            folder_name = os.path.basename(os.path.normpath(folder))
            result = ScannedGameResult(
                source=GameSource.GOG,
                original_name=folder_name,
                install_path=folder,
                title=name or folder_name,
                status=ScanStatus.AMBIGUOUS,
            )
        if exe_path:
            result.exe_path = exe_path
        if name:
            result.title = name
        if info.get('gameId'):
            result.app_id = str(info['gameId'])
        return result
