"""On-disk image cache used when building library records."""

import hashlib
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlparse

from ..errors import ProviderError
from ..utils.http import HttpClient
from ..utils.paths import get_image_cache_dir

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp', '.gif', '.ico')


class ImageCache(ABC):

    @abstractmethod
    async def cache_image(self, url: str, game_id: str, image_type: str) -> str:
        """
        Store an image locally.

        Returns:
            Local reference to the image, or the original url when caching fails.
        """
        pass


def cache_filename(url: str, game_id: str, image_type: str) -> str:
    """<game_id>-<image_type>-<hash><ext>, safe for any filesystem."""
    ext = os.path.splitext(urlparse(url).path)[1].lower()
    if ext not in IMAGE_EXTENSIONS:
        ext = '.jpg'
    digest = hashlib.sha1(url.encode('utf-8')).hexdigest()[:16]
    safe_id = re.sub(r'[^A-Za-z0-9_.-]', '_', game_id)
    return f"{safe_id}-{image_type}-{digest}{ext}"


class LocalImageCache(ImageCache):
    """Downloads images into the data directory's cache/images folder."""

    def __init__(self, cache_dir: Optional[str] = None, http: Optional[HttpClient] = None):
        self.cache_dir = cache_dir or get_image_cache_dir()
        self.http = http or HttpClient('images', timeout=30.0)

    async def cache_image(self, url: str, game_id: str, image_type: str) -> str:
        if not url or not url.startswith(('http://', 'https://')):
            return url

        path = os.path.join(self.cache_dir, cache_filename(url, game_id, image_type))
        if os.path.exists(path):
            return path

        try:
            content = await self.http.get_bytes(url)
            if not content:
                logger.debug(f"[ImageCache] Nothing downloaded for {url}")
                return url
            os.makedirs(self.cache_dir, exist_ok=True)
            tmp_path = path + '.part'
            with open(tmp_path, 'wb') as f:
                f.write(content)
            os.replace(tmp_path, path)
            logger.debug(f"[ImageCache] Cached {image_type} for {game_id} at {path}")
            return path
        except (ProviderError, OSError) as e:
            logger.warning(f"[ImageCache] Could not cache {url}: {e}")
            return url

    async def close(self):
        await self.http.close()
