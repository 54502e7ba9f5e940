"""Ubisoft Connect scanner."""
import os
from typing import Optional

from .base import GameSource
from .executables import ExecutableScanner


class UbisoftScanner(ExecutableScanner):
    """Games under the Ubisoft Game Launcher's games folder"""

    extra_exclusions = ('uplay', 'ubisoft')

    @property
    def source(self) -> GameSource:
        return GameSource.UBISOFT

    def resolve_games_root(self, root_path: str) -> Optional[str]:
        games = os.path.join(root_path, 'games')
        if os.path.isdir(games):
            return games
        return root_path if os.path.isdir(root_path) else None
