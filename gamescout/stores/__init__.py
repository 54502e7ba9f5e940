from .base import GameSource, ScanStatus, ScannedGameResult, Scanner
from .manager import ScanManager, create_default_manager

__all__ = [
    'GameSource',
    'ScanStatus',
    'ScannedGameResult',
    'Scanner',
    'ScanManager',
    'create_default_manager',
]
