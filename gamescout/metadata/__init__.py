from .base import GameArtwork, GameDescription, GameRecord, GameSearchResult, MetadataProvider
from .igdb import IGDBProvider
from .rawg import RAWGProvider
from .steam import SteamProvider
from .steamgriddb import SteamGridDBProvider

__all__ = [
    'GameArtwork',
    'GameDescription',
    'GameRecord',
    'GameSearchResult',
    'MetadataProvider',
    'IGDBProvider',
    'RAWGProvider',
    'SteamProvider',
    'SteamGridDBProvider',
]
