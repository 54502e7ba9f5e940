"""Launch dispatch for resolved library records."""

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional, Union

from ..metadata.base import GameRecord
from ..stores.base import GameSource, ScannedGameResult

logger = logging.getLogger(__name__)

KIND_URI = 'uri'
KIND_EXE = 'exe'


@dataclass
class LaunchAction:
    kind: str  # 'uri' or 'exe'
    target: str


def build_launch_action(record: Union[GameRecord, ScannedGameResult]) -> Optional[LaunchAction]:
    """
    Decide how a record or a fresh scan result is started.

    Steam games go through the steam:// protocol, Epic games without a known
    executable through the Epic launcher protocol, everything else runs its
    executable directly.

    Returns:
        LaunchAction, or None when the record has nothing to launch.
    """
    if record.source == GameSource.STEAM.value and record.app_id:
        return LaunchAction(KIND_URI, f"steam://rungameid/{record.app_id}")

    if record.source == GameSource.EPIC.value and not record.exe_path and record.app_id:
        return LaunchAction(
            KIND_URI,
            f"com.epicgames.launcher://apps/{record.app_id}?action=launch&silent=true",
        )

    if record.exe_path:
        return LaunchAction(KIND_EXE, record.exe_path)

    logger.warning(f"[Launch] Nothing to launch for '{record.title}'")
    return None


def _open_uri(uri: str) -> None:
    if sys.platform == 'win32':
        os.startfile(uri)
    elif sys.platform == 'darwin':
        subprocess.Popen(['open', uri], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    else:
        subprocess.Popen(['xdg-open', uri], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def launch(action: LaunchAction) -> bool:
    """Start a game detached from this process. Returns False if spawning failed."""
    logger.info(f"[Launch] {action.kind}: {action.target}")
    try:
        if action.kind == KIND_URI:
            _open_uri(action.target)
        else:
            subprocess.Popen(
                [action.target],
                cwd=os.path.dirname(action.target) or None,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=sys.platform != 'win32',
            )
        return True
    except OSError as e:
        logger.error(f"[Launch] Failed to launch {action.target}: {e}", exc_info=True)
        return False
