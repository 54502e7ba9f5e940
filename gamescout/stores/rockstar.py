"""Rockstar Games Launcher scanner."""
from .base import GameSource
from .executables import ExecutableScanner


class RockstarScanner(ExecutableScanner):
    """Games under the Rockstar Games install root"""

    skip_folders = ('Launcher', 'Social Club', 'Redistributables')
    extra_exclusions = ('socialclub', 'redistributables')

    @property
    def source(self) -> GameSource:
        return GameSource.ROCKSTAR
