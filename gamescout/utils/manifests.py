"""Epic Games Launcher .item manifest parsing."""

import json
import logging
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from ..errors import ParseError

logger = logging.getLogger(__name__)


@dataclass
class ItemManifest:
    """Fields we use from a single Epic .item manifest"""
    display_name: str
    install_location: str
    launch_executable: Optional[str] = None
    app_name: Optional[str] = None
    catalog_item_id: Optional[str] = None
    catalog_namespace: Optional[str] = None
    manifest_path: Optional[str] = None

    @property
    def executable_path(self) -> Optional[str]:
        if not self.launch_executable:
            return None
        return os.path.join(self.install_location, self.launch_executable)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_item_manifest(path: str) -> Dict[str, Any]:
    """
    Read an .item file and check the required keys.

    Raises:
        ParseError: invalid JSON, not an object, or no InstallLocation.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except ValueError as e:
        raise ParseError(f"Invalid JSON in manifest: {e}", path) from e
    except OSError as e:
        raise ParseError(f"Could not read manifest: {e}", path) from e

    if not isinstance(data, dict):
        raise ParseError("Manifest root is not an object", path)

    location = data.get('InstallLocation')
    if not isinstance(location, str) or not location.strip():
        raise ParseError("Manifest has no InstallLocation", path)

    launch = data.get('LaunchExecutable')
    if launch is not None and not isinstance(launch, str):
        raise ParseError("LaunchExecutable is not a string", path)

    return data


def parse_item_manifest(path: str) -> Optional[ItemManifest]:
    """
    Parse an .item manifest into an ItemManifest.

    Returns:
        None when the manifest is malformed or its install folder no longer exists.
    """
    try:
        data = load_item_manifest(path)
    except ParseError as e:
        logger.warning(f"[EpicManifest] Skipping {path}: {e}")
        return None

    install_location = os.path.normpath(data['InstallLocation'].strip())
    if not os.path.isdir(install_location):
        logger.debug(f"[EpicManifest] Install path gone for {path}: {install_location}")
        return None

    display_name = (data.get('DisplayName') or '').strip()
    if not display_name:
        display_name = os.path.basename(install_location)

    return ItemManifest(
        display_name=display_name,
        install_location=install_location,
        launch_executable=(data.get('LaunchExecutable') or '').strip() or None,
        app_name=data.get('AppName') or None,
        catalog_item_id=data.get('CatalogItemId') or None,
        catalog_namespace=data.get('CatalogNamespace') or None,
        manifest_path=path,
    )
