"""
Base Scanner class defining the interface for all launcher scanners.

Every launcher family (Steam, Epic, GOG, ...) inherits from this and
implements scan(). Scanners only read the filesystem.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, asdict, field
import logging
import uuid

from ..errors import InvalidStatusTransition


logger = logging.getLogger(__name__)


class GameSource(str, Enum):
    STEAM = 'steam'
    EPIC = 'epic'
    GOG = 'gog'
    XBOX = 'xbox'
    UBISOFT = 'ubisoft'
    ROCKSTAR = 'rockstar'
    MANUAL_FILE = 'manual_file'
    MANUAL_FOLDER = 'manual_folder'


class ScanStatus(str, Enum):
    PENDING = 'pending'
    SCANNING = 'scanning'
    AMBIGUOUS = 'ambiguous'
    MATCHED = 'matched'
    READY = 'ready'
    ERROR = 'error'


_STATUS_RANK = {
    ScanStatus.PENDING: 0,
    ScanStatus.SCANNING: 1,
    ScanStatus.AMBIGUOUS: 2,
    ScanStatus.MATCHED: 3,
    ScanStatus.READY: 4,
}


def check_transition(current: ScanStatus, new: ScanStatus) -> None:
    """Raise InvalidStatusTransition unless current -> new moves forward."""
    if new == current or new == ScanStatus.ERROR:
        return
    if current == ScanStatus.ERROR or _STATUS_RANK[new] < _STATUS_RANK[current]:
        raise InvalidStatusTransition(f"Cannot move scan status from {current.value} to {new.value}")


@dataclass
class ScannedGameResult:
    """A game found on disk by a scanner"""
    source: GameSource
    original_name: str
    install_path: str
    title: str
    exe_path: Optional[str] = None
    app_id: Optional[str] = None
    status: ScanStatus = ScanStatus.PENDING
    error: Optional[str] = None
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __setattr__(self, name: str, value: Any) -> None:
        if name == 'source':
            if 'source' in self.__dict__:
                raise AttributeError("source cannot be changed once a scan result exists")
            value = GameSource(value)
        if name == 'status':
            value = ScanStatus(value)
            if 'status' in self.__dict__:
                check_transition(self.__dict__['status'], value)
        super().__setattr__(name, value)

    def fail(self, message: str) -> None:
        """Move to the error state with a message."""
        self.status = ScanStatus.ERROR
        self.error = message

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['source'] = self.source.value
        data['status'] = self.status.value
        return data


class Scanner(ABC):
    """
    Abstract base class for launcher scanners.

    scan() is synchronous and must not raise for ordinary filesystem
    conditions: a missing root or unreadable folders produce fewer results,
    not exceptions.
    """

    @property
    @abstractmethod
    def source(self) -> GameSource:
        """Return the launcher family this scanner covers"""
        pass

    @abstractmethod
    def scan(self, root_path: str) -> List[ScannedGameResult]:
        """
        Find installed games under a launcher's install root.

        Args:
            root_path: The configured scan root for this launcher.

        Returns:
            List of ScannedGameResult objects, possibly empty.
        """
        pass

    @property
    def name(self) -> str:
        return type(self).__name__
