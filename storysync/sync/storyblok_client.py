"""
Minimal Storyblok content delivery API client.

Only the two calls the sync engine needs are used: the paginated story listing
(``cdn/stories``) and the single story fetch (``cdn/stories/<id>``). There is
no retry layer; a failed request raises SourceFetchError.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

from ..config import DEFAULT_STORYBLOK_API_URL
from .config import StoryblokSettings
from .error_tracker import SourceFetchError
from .logging_manager import get_logger

logger = get_logger(__name__)


@dataclass
class StoryblokResponse:
    """Decoded response body plus the ``Total`` header of listings."""
    data: Dict[str, Any]
    total: Optional[int] = None


class StoryblokClient:
    def __init__(self, token: Optional[str], api_url: str = DEFAULT_STORYBLOK_API_URL,
                 timeout: int = 30, session: Optional[requests.Session] = None):
        self.token = token
        self.api_url = api_url if api_url.endswith('/') else f'{api_url}/'
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: StoryblokSettings) -> 'StoryblokClient':
        return cls(token=settings.token, api_url=settings.api_url, timeout=settings.timeout)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> StoryblokResponse:
        url = urljoin(self.api_url, path.lstrip('/'))
        query = dict(params or {})
        if self.token:
            query['token'] = self.token

        logger.debug(f"GET {url}", extra={'details': {'params': {k: v for k, v in query.items() if k != 'token'}}})
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise SourceFetchError(f"Storyblok request failed for {path}: {e}", source_id=path)
        except ValueError as e:
            raise SourceFetchError(f"Storyblok returned invalid JSON for {path}: {e}", source_id=path)

        total = response.headers.get('total')
        return StoryblokResponse(data=data, total=int(total) if total is not None else None)
