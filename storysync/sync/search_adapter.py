"""
Elasticsearch request builders and response adapters.

Search responses come back in different shapes depending on the client
version: wrapped in a response object or a ``{"body": ...}`` dict (7+), or as
the bare search result (older clients). ``HitsAdapter`` normalizes this once
so callers only ever see the ``hits`` object.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from elasticsearch import ApiError, TransportError

from .config import StorySyncConfig
from .error_tracker import MissingStoryError
from .identity import index_name, normalize_slug
from .logging_manager import get_logger
from .transformer import deserialize_content

logger = get_logger(__name__)

# Errors raised by the Elasticsearch client for failed requests
ELASTICSEARCH_ERRORS = (ApiError, TransportError)

NOT_FOUND = {'story': False}


def response_body(response: Any) -> Any:
    """Plain body of a client response (``ObjectApiResponse.body``) or the response itself."""
    body = getattr(response, 'body', None)
    return response if body is None else body


def create_index_request(config: StorySyncConfig) -> Dict[str, Any]:
    return {
        'index': index_name(config),
        'settings': {
            'index.mapping.total_fields.limit': config.storyblok.field_limit,
        },
    }


def delete_index_request(config: StorySyncConfig) -> Dict[str, Any]:
    return {
        'index': index_name(config),
        'ignore_unavailable': True,
    }


def query_by_path(config: StorySyncConfig, path: str) -> Dict[str, Any]:
    """Exact match on ``full_slug.keyword``. Only one type lives in the index, so no type filter is needed."""
    return {
        'index': index_name(config),
        'query': {
            'constant_score': {
                'filter': {
                    'term': {
                        'full_slug.keyword': normalize_slug(path),
                    }
                }
            }
        },
    }


class HitsAdapter(ABC):
    """Extracts the ``hits`` object from a search response."""

    @abstractmethod
    def get_hits(self, result: Any) -> Dict[str, Any]:
        ...


def _unwrap_body(result: Any) -> Any:
    body = response_body(result)
    if isinstance(body, dict) and 'body' in body:
        return body['body']
    return body


class LegacyHitsAdapter(HitsAdapter):
    """
    Pre-7 clients return the search result itself. A result wrapped the 7+
    way is unwrapped first.
    """

    def get_hits(self, result: Any) -> Dict[str, Any]:
        if isinstance(result, dict) and 'hits' in result:
            return result['hits']
        return _unwrap_body(result)['hits']


class ResponseBodyHitsAdapter(HitsAdapter):
    """
    7+ clients wrap the result: ``ObjectApiResponse.body`` or ``{"body": ...}``.
    A bare result is accepted as well.
    """

    def get_hits(self, result: Any) -> Dict[str, Any]:
        return _unwrap_body(result)['hits']


def hits_adapter_for(config: StorySyncConfig) -> HitsAdapter:
    if config.elasticsearch.api_version < 7:
        return LegacyHitsAdapter()
    return ResponseBodyHitsAdapter()


def hits_total(hits: Dict[str, Any]) -> int:
    total = hits.get('total', 0)
    if isinstance(total, dict):
        return int(total.get('value', 0))
    return int(total or 0)


def hits_as_story(hits: Dict[str, Any]) -> Dict[str, Any]:
    """
    First hit as a story with ``content`` deserialized.

    Raises:
        MissingStoryError: if there are no hits
    """
    if hits_total(hits) == 0 or not hits.get('hits'):
        raise MissingStoryError("Missing story")
    story = dict(hits['hits'][0]['_source'])
    story['content'] = deserialize_content(story.get('content'))
    return story


def get_story(es, config: StorySyncConfig, path: str) -> Dict[str, Any]:
    """
    Look up a story by its full slug for preview rendering.

    Missing stories and search failures yield ``{"story": False}``.
    """
    try:
        response = es.search(**query_by_path(config, path))
        hits = hits_adapter_for(config).get_hits(response)
        return hits_as_story(hits)
    except MissingStoryError:
        logger.info(f"No story found for path: {path}", extra={'details': {'path': path}})
        return dict(NOT_FOUND)
    except ELASTICSEARCH_ERRORS + (KeyError, ValueError) as e:
        logger.warning(f"Story lookup failed for path {path}: {e}", extra={'details': {'path': path}})
        return dict(NOT_FOUND)
