"""User-chosen folders: every subfolder is treated as one game."""
from .base import GameSource
from .executables import ExecutableScanner


class ManualFolderScanner(ExecutableScanner):

    @property
    def source(self) -> GameSource:
        return GameSource.MANUAL_FOLDER
