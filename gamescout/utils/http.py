"""Shared aiohttp transport for the metadata providers.

HTTP failures are translated into the provider error types so callers can
tell auth problems, rate limiting and transient network failures apart.
"""

import asyncio
import logging
import ssl
from typing import Any, Dict, Optional

import aiohttp
import certifi

from ..errors import (
    AuthenticationError,
    NetworkError,
    ProviderError,
    RateLimitedError,
    RequestTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
USER_AGENT = "GameScout/0.3 (+https://github.com/gamescout/gamescout)"


def looks_like_invalid_key(body: str) -> bool:
    """Provider error bodies that mean the credential is bad."""
    lowered = body.lower()
    return 'invalid' in lowered and ('key' in lowered or 'token' in lowered or 'client' in lowered)


class HttpClient:
    """One aiohttp session per provider with a fixed per-request timeout."""

    def __init__(self, provider: str, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.provider = provider
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context, limit_per_host=5)
            self.session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": USER_AGENT}
            )
            self._owns_session = True
        return self.session

    async def _raise_for_status(self, resp: aiohttp.ClientResponse) -> None:
        status = resp.status
        if status < 400 or status == 404:
            return
        try:
            body = await resp.text()
        except (aiohttp.ClientError, UnicodeDecodeError):
            body = ''

        if status in (401, 403):
            raise AuthenticationError(f"{self.provider} rejected credentials ({status})", self.provider, status)
        if status == 429:
            raise RateLimitedError(f"{self.provider} rate limit hit", self.provider, status)
        if status >= 500:
            raise NetworkError(f"{self.provider} server error {status}", self.provider, status)
        if looks_like_invalid_key(body):
            raise AuthenticationError(f"{self.provider} reported an invalid key ({status})", self.provider, status)
        raise ProviderError(f"{self.provider} request failed with {status}: {body[:200]}", self.provider, status)

    async def request(self, method: str, url: str, *,
                      params: Optional[Dict[str, Any]] = None,
                      headers: Optional[Dict[str, str]] = None,
                      data: Any = None,
                      expect: str = 'json') -> Any:
        """
        Perform one HTTP request.

        Args:
            expect: 'json', 'text', 'bytes' or 'status' (returns True on 2xx).

        Returns:
            The decoded body, or None for 404.

        Raises:
            AuthenticationError, RateLimitedError, NetworkError,
            RequestTimeoutError or ProviderError.
        """
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                params=params,
                headers=headers,
                data=data,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                await self._raise_for_status(resp)
                if resp.status == 404:
                    logger.debug(f"[{self.provider}] 404 for {url}")
                    return None
                if expect == 'status':
                    return True
                if expect == 'bytes':
                    return await resp.read()
                if expect == 'text':
                    return await resp.text()
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise ProviderError(f"{self.provider} returned invalid JSON: {e}", self.provider, resp.status) from e
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"{self.provider} request timed out after {self.timeout}s",
                                      self.provider) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{self.provider} connection error: {e}", self.provider) from e

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request('GET', url, params=params, headers=headers)

    async def post_json(self, url: str, data: Any = None, params: Optional[Dict[str, Any]] = None,
                        headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request('POST', url, params=params, headers=headers, data=data)

    async def exists(self, url: str) -> bool:
        """HEAD request; True for a 2xx answer."""
        return bool(await self.request('HEAD', url, expect='status'))

    async def get_bytes(self, url: str) -> Optional[bytes]:
        return await self.request('GET', url, expect='bytes')

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed and self._owns_session:
            await self.session.close()
        self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
