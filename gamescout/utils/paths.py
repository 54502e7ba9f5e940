"""GameScout file path constants and utilities."""

import os
import sys
from pathlib import Path
from typing import Dict


def get_data_dir() -> str:
    """Data directory, overridable with GAMESCOUT_DATA_DIR."""
    override = os.environ.get("GAMESCOUT_DATA_DIR")
    if override:
        return os.path.expanduser(override)
    return os.path.expanduser("~/.local/share/gamescout")


def get_settings_path() -> str:
    return os.path.join(get_data_dir(), "settings.json")


def get_metadata_cache_path() -> str:
    return os.path.join(get_data_dir(), "metadata_cache.json")


def get_image_cache_dir() -> str:
    return os.path.join(get_data_dir(), "cache", "images")


def _program_files() -> Dict[str, str]:
    return {
        'x86': os.environ.get('ProgramFiles(x86)', 'C:\\Program Files (x86)'),
        'x64': os.environ.get('PROGRAMFILES', 'C:\\Program Files'),
    }


def default_launcher_paths() -> Dict[str, str]:
    """Best-guess install roots per launcher for the current platform.

    Only paths that exist are returned, so callers can offer them as
    pre-filled launcher configs.
    """
    if sys.platform == 'win32':
        pf = _program_files()
        candidates = {
            'steam': [os.path.join(pf['x86'], 'Steam'), os.path.join(pf['x64'], 'Steam')],
            'epic': [os.path.join(pf['x64'], 'Epic Games'), os.path.join(pf['x86'], 'Epic Games')],
            'gog': [os.path.join(pf['x86'], 'GOG Galaxy'), 'C:\\GOG Games'],
            'ubisoft': [os.path.join(pf['x86'], 'Ubisoft', 'Ubisoft Game Launcher')],
            'rockstar': [os.path.join(pf['x64'], 'Rockstar Games')],
            'xbox': [pf['x64'], 'C:\\XboxGames'],
        }
    else:
        home = Path.home()
        candidates = {
            'steam': [str(home / '.steam' / 'steam'), str(home / '.local' / 'share' / 'Steam')],
            'gog': [str(home / 'GOG Games')],
            'epic': [str(home / 'Games' / 'Heroic')],
        }

    found = {}
    for launcher_id, paths in candidates.items():
        for path in paths:
            if os.path.isdir(path):
                found[launcher_id] = path
                break
    return found
