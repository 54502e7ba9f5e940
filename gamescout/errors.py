"""Exception types shared across scanners, providers and the coordinator."""
from typing import Optional


class GameScoutError(Exception):
    """Base class for all GameScout errors"""


class ParseError(GameScoutError):
    """A manifest could not be decoded or lacks required fields"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PathNotFoundError(GameScoutError):
    """A configured scan root does not exist"""


class UnsupportedSourceError(GameScoutError):
    """No scanner is registered for the requested source"""


class InvalidStatusTransition(GameScoutError, ValueError):
    """A scan result status tried to move backwards"""


class QueueCancelledError(GameScoutError):
    """A queued request was dropped before it was dispatched"""


class ProviderError(GameScoutError):
    """An external metadata provider call failed"""

    def __init__(self, message: str, provider: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class AuthenticationError(ProviderError):
    """Credentials were rejected (401/403 or an invalid key message)"""


class ProviderDisabledError(ProviderError):
    """A queued call was skipped because its provider disabled itself"""


class RateLimitedError(ProviderError):
    """The provider answered 429"""


class NetworkError(ProviderError):
    """Connection failure or 5xx response, safe to retry"""


class RequestTimeoutError(NetworkError):
    """The request exceeded its wall-clock bound"""
