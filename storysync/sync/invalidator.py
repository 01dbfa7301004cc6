"""
Cache purge after index changes.

Calls the configured purge endpoint once, with a ``tag`` query parameter when
the affected story is known. Purging is best-effort: request failures are
logged and never propagate.
"""

from typing import Any, Dict, Optional

import requests

from .config import StoryblokSettings
from .logging_manager import get_logger

logger = get_logger(__name__)


class CacheInvalidator:
    def __init__(self, url: Optional[str], timeout: int = 10, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: StoryblokSettings) -> 'CacheInvalidator':
        return cls(url=settings.invalidate, timeout=settings.timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def invalidate(self, story: Optional[Dict[str, Any]] = None) -> bool:
        """
        Purge the cache, scoped to the story's cache tag when it has one.

        Returns:
            True if the purge request completed, False if disabled or failed
        """
        if not self.enabled:
            return False

        params = {}
        if story and story.get('cache_tag'):
            params['tag'] = story['cache_tag']

        logger.info(f"Invalidating cache... ({self.url})", extra={'details': {'tag': params.get('tag')}})
        try:
            self.session.get(self.url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Cache invalidation failed for {self.url}: {e}")
            return False

        logger.info("Invalidated cache ✅")
        return True
