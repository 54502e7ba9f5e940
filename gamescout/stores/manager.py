"""
Scan Manager - runs every enabled launcher scanner.

Scanners run concurrently, one worker thread each. A failing scanner is
logged and contributes nothing; the other launchers' results still come back.
"""
from typing import Dict, Iterable, List, Optional
import asyncio
import logging

from .base import Scanner, ScannedGameResult, GameSource
from .epic import EpicScanner
from .gog import GOGScanner
from .manual import ManualFolderScanner
from .rockstar import RockstarScanner
from .steam import SteamScanner
from .ubisoft import UbisoftScanner
from .xbox import XboxScanner
from ..config import LauncherConfig
from ..errors import UnsupportedSourceError


logger = logging.getLogger(__name__)


class ScanManager:
    """
    Registry of launcher scanners plus the aggregate scan.
    """

    def __init__(self):
        self._scanners: Dict[GameSource, Scanner] = {}

    def register_scanner(self, scanner: Scanner):
        """Register a scanner for its source."""
        self._scanners[scanner.source] = scanner
        logger.info(f"Registered scanner: {scanner.source.value}")

    def get_scanner(self, source) -> Optional[Scanner]:
        try:
            return self._scanners.get(GameSource(source))
        except ValueError:
            return None

    @property
    def scanners(self) -> Dict[GameSource, Scanner]:
        return self._scanners

    async def _run_scanner(self, scanner: Scanner, root_path: str) -> List[ScannedGameResult]:
        try:
            results = await asyncio.to_thread(scanner.scan, root_path)
            logger.info(f"[ScanManager] {scanner.source.value}: {len(results)} games from {root_path}")
            return results
        except Exception as e:
            logger.error(f"[ScanManager] {scanner.source.value} scan of {root_path} failed: {e}", exc_info=True)
            return []

    async def scan_all(self, launchers: Iterable[LauncherConfig]) -> List[ScannedGameResult]:
        """
        Scan every enabled launcher concurrently.

        Args:
            launchers: Launcher configs; disabled entries are skipped.

        Returns:
            Concatenated results in launcher order.

        Raises:
            UnsupportedSourceError: a launcher names a source with no scanner.
        """
        jobs = []
        for launcher in launchers:
            if not launcher.enabled or not launcher.path:
                continue
            scanner = self.get_scanner(launcher.id)
            if scanner is None:
                raise UnsupportedSourceError(f"No scanner registered for source '{launcher.id}'")
            jobs.append(self._run_scanner(scanner, launcher.path))

        if not jobs:
            return []

        results: List[ScannedGameResult] = []
        for batch in await asyncio.gather(*jobs):
            results.extend(batch)
        logger.info(f"[ScanManager] Scan complete: {len(results)} games from {len(jobs)} launchers")
        return results


def create_default_manager() -> ScanManager:
    """ScanManager with every built-in scanner registered."""
    manager = ScanManager()
    for scanner in (SteamScanner(), EpicScanner(), GOGScanner(), XboxScanner(),
                    UbisoftScanner(), RockstarScanner(), ManualFolderScanner()):
        manager.register_scanner(scanner)
    return manager
