"""
Index identity and cache tagging.

Pure functions that derive the index name, the document type, the locator of a
single document and the cache tag of a story. Every component that touches the
index goes through these functions so that full syncs and webhook updates
always address the same index.
"""

from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from .config import StorySyncConfig
from .error_tracker import InvalidSlugError, MissingStoryError

SYSTEM_CACHE_TAG = 'SB_SYS'
CACHE_TAG_PREFIX = 'SB'
BRAND_MARKER = 'brand-'
PUBLISH_TAG_PREFIX = 'publish-'

# Engines from this version on fold the entity into the index name
TYPELESS_API_VERSION = 6
TYPELESS_DOCUMENT_TYPE = '_doc'


def index_name(config: StorySyncConfig) -> str:
    if config.elasticsearch.api_version < TYPELESS_API_VERSION:
        return config.storyblok.index
    return f"{config.storyblok.index}_{config.storyblok.entity}"


def entity_type(config: StorySyncConfig) -> str:
    if config.elasticsearch.api_version < TYPELESS_API_VERSION:
        return config.storyblok.entity
    return TYPELESS_DOCUMENT_TYPE


class DocumentLocator(NamedTuple):
    """
    Address of a single document: (index, type, id).

    ``typed`` marks engines that still address documents by mapping type. The
    type then travels in bulk action headers only; the 8.x client has no
    ``doc_type`` parameter, so single-document requests carry index and id.
    """
    index: str
    type: str
    id: Any
    typed: bool = False

    def as_request(self) -> Dict[str, Any]:
        """Keyword arguments for exists/delete/index calls."""
        return {'index': self.index, 'id': self.id}


def document_locator(config: StorySyncConfig, story_id: Any) -> DocumentLocator:
    return DocumentLocator(
        index=index_name(config),
        type=entity_type(config),
        id=story_id,
        typed=config.elasticsearch.uses_mapping_types,
    )


def normalize_slug(slug: str) -> str:
    """Strip leading and trailing slashes."""
    return slug.strip('/')


def cache_tag(story: Dict[str, Any]) -> str:
    """
    Derive the cache purge tag of a story.

    - ``system/...`` → ``SB_SYS``
    - ``overrides/<..brand-X..>/system/general...`` → ``SBX``
    - ``overrides/<..brand-X..>/system/<other>`` → ``SB_SYS``
    - anything else → ``SB<story id>``

    Raises:
        InvalidSlugError: if the story has no usable full_slug
        MissingStoryError: if an id-derived tag is needed and the story has no id
    """
    full_slug = normalize_slug(story.get('full_slug') or '')
    if not full_slug:
        raise InvalidSlugError(
            "Story has an empty full_slug",
            source_id=_story_ref(story),
            recovery_suggestion="Check the story's slug and parent folder in Storyblok",
        )
    parts = full_slug.split('/')
    if any(not part for part in parts):
        raise InvalidSlugError(f"Story has an empty slug segment: {full_slug!r}", source_id=_story_ref(story))

    if parts[0] == 'system':
        return SYSTEM_CACHE_TAG

    if len(parts) >= 3 and parts[0] == 'overrides' and BRAND_MARKER in parts[1] and parts[2] == 'system':
        if 'system/general' in full_slug:
            brand = parts[1].split(BRAND_MARKER, 1)[1]
            return f"{CACHE_TAG_PREFIX}{brand}"
        return SYSTEM_CACHE_TAG

    story_id = story.get('id')
    if story_id is None:
        raise MissingStoryError(f"Story {full_slug!r} has no id", source_id=full_slug)
    return f"{CACHE_TAG_PREFIX}{story_id}"


def publish_environments(story: Dict[str, Any]) -> List[str]:
    """Environments named by the story's ``publish-<env>`` tags."""
    tags: Iterable[str] = story.get('tag_list') or []
    return [tag[len(PUBLISH_TAG_PREFIX):] for tag in tags if tag.startswith(PUBLISH_TAG_PREFIX)]


def is_published_for(story: Dict[str, Any], environment: Optional[str]) -> bool:
    """A story with no publish tags is published everywhere."""
    if not environment:
        return True
    environments = publish_environments(story)
    return not environments or environment in environments


def _story_ref(story: Dict[str, Any]) -> Optional[str]:
    story_id = story.get('id')
    return None if story_id is None else str(story_id)
