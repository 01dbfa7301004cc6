"""
Story → indexable document transformation.

Two paths share the same slug normalization and cache tag logic:

- ``transform_story`` builds a single ``index`` request for the webhook path,
  with ``content`` already serialized.
- ``prepare_story`` is the lighter full-sync step: it adds ``real_path`` and
  ``folder`` and leaves ``content`` nested; the bulk builder serializes it.
"""

import json
from typing import Any, Dict, NamedTuple, Optional

from .config import StorySyncConfig
from .identity import DocumentLocator, cache_tag, document_locator, normalize_slug


class TransformedStory(NamedTuple):
    locator: DocumentLocator
    body: Dict[str, Any]

    def as_request(self) -> Dict[str, Any]:
        """Keyword arguments for ``Elasticsearch.index``."""
        return {**self.locator.as_request(), 'document': self.body}


def serialize_content(content: Any) -> str:
    return json.dumps(content, ensure_ascii=False)


def deserialize_content(content: Any) -> Any:
    """Inverse of serialize_content; nested values pass through unchanged."""
    if isinstance(content, str):
        return json.loads(content)
    return content


def real_path(slug: str) -> str:
    return slug if slug.startswith('/') else f'/{slug}'


def folder_of(slug: str) -> Optional[str]:
    """Parent path of a slug, None for top-level stories."""
    if '/' not in slug:
        return None
    return slug.rsplit('/', 1)[0]


def transform_story(config: StorySyncConfig, story: Dict[str, Any]) -> TransformedStory:
    body = dict(story)
    story_id = body.pop('id', None)
    body['content'] = serialize_content(body.get('content'))
    body['full_slug'] = normalize_slug(body.get('full_slug') or '')
    body['cache_tag'] = cache_tag({**body, 'id': story_id})
    return TransformedStory(locator=document_locator(config, story_id), body=body)


def prepare_story(story: Dict[str, Any]) -> Dict[str, Any]:
    prepared = dict(story)
    full_slug = normalize_slug(story.get('full_slug') or '')
    prepared['full_slug'] = full_slug
    prepared['real_path'] = real_path(full_slug)
    prepared['cache_tag'] = cache_tag(prepared)
    prepared['folder'] = folder_of(full_slug)
    return prepared
