"""
Full sync: rebuild the index from every published story.

Pages are consumed from a lazy generator. The next page is only requested
after the current page's bulk write has returned, so at most one page of
stories is held in memory and bulk writes never overlap while the index is
being rebuilt.

A failed fetch or bulk request aborts the whole run with FullSyncError. The
index may then be empty or partially populated; rerun the full sync.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .bulk import build_bulk_operations
from .config import StorySyncConfig
from .error_tracker import FullSyncError, MissingStoryError, SyncException
from .identity import index_name, is_published_for
from .logging_manager import get_logger
from .search_adapter import ELASTICSEARCH_ERRORS, create_index_request, delete_index_request, response_body
from .storyblok_client import StoryblokClient
from .transformer import prepare_story

logger = get_logger(__name__)

STORIES_PATH = 'cdn/stories'


@dataclass
class StoryPage:
    page: int
    last_page: int
    stories: List[Dict[str, Any]]

    @property
    def has_more(self) -> bool:
        return self.page < self.last_page


@dataclass
class FullSyncResult:
    """Counters of a full sync run."""
    index: str
    pages: int = 0
    fetched: int = 0
    indexed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


def last_page_for(total: Optional[int], per_page: int) -> int:
    return math.ceil((total or 0) / per_page)


def fetch_page(storyblok: StoryblokClient, page: int, per_page: int, resolve_links: str = 'url') -> StoryPage:
    response = storyblok.get(STORIES_PATH, {
        'page': page,
        'per_page': per_page,
        'resolve_links': resolve_links,
    })
    stories = response.data.get('stories') or []
    return StoryPage(page=page, last_page=last_page_for(response.total, per_page), stories=stories)


def iter_pages(storyblok: StoryblokClient, per_page: int, start_page: int = 1,
               resolve_links: str = 'url') -> Iterator[StoryPage]:
    """Yield pages in order until ``ceil(total / per_page)`` is reached."""
    page = start_page
    while True:
        story_page = fetch_page(storyblok, page, per_page, resolve_links)
        yield story_page
        if not story_page.has_more:
            return
        page += 1


def filter_for_environment(stories: List[Dict[str, Any]], environment: Optional[str]) -> Tuple[List[Dict[str, Any]], int]:
    kept = [story for story in stories if is_published_for(story, environment)]
    return kept, len(stories) - len(kept)


def index_stories(es, config: StorySyncConfig, stories: List[Dict[str, Any]]) -> Tuple[int, List[str]]:
    """
    Submit one bulk write for the given prepared stories.

    Returns:
        (number of documents written, per-item error messages)
    """
    operations = build_bulk_operations(config, stories)
    if not operations:
        return 0, []

    response = response_body(es.bulk(operations=operations))
    if not response.get('errors'):
        return len(stories), []

    item_errors = []
    for item in response.get('items', []):
        action = item.get('index') or {}
        if action.get('error'):
            item_errors.append(f"{action.get('_id')}: {action['error']}")
    for message in item_errors:
        logger.warning(f"Bulk item failed: {message}")
    return len(stories) - len(item_errors), item_errors


def sync_stories(es, storyblok: StoryblokClient, config: StorySyncConfig, page: int = 1,
                 per_page: Optional[int] = None, environment: Optional[str] = None) -> FullSyncResult:
    """Index every published story, one bulk write per page."""
    per_page = per_page or config.storyblok.per_page
    result = FullSyncResult(index=index_name(config))

    for story_page in iter_pages(storyblok, per_page, start_page=page, resolve_links=config.storyblok.resolve_links):
        kept, skipped = filter_for_environment(story_page.stories, environment)

        prepared = []
        for story in kept:
            try:
                prepared.append(prepare_story(story))
            except MissingStoryError as e:
                result.failed += 1
                result.errors.append(e.message)
                logger.warning(f"Skipping malformed story: {e.message}", extra={'details': {'story_id': story.get('id')}})

        indexed, item_errors = index_stories(es, config, prepared)

        result.pages += 1
        result.fetched += len(story_page.stories)
        result.skipped += skipped
        result.indexed += indexed
        result.failed += len(item_errors)
        result.errors.extend(item_errors)

        logger.info(
            f"Indexed page {story_page.page}/{story_page.last_page}: {indexed} stories",
            extra={'details': {'page': story_page.page, 'indexed': indexed, 'skipped': skipped}}
        )

    return result


def full_sync(es, storyblok: StoryblokClient, config: StorySyncConfig) -> FullSyncResult:
    """
    Delete and recreate the index, then sync every published story into it.

    Raises:
        FullSyncError: if any step fails
    """
    target = index_name(config)
    logger.info("📖 Syncing published stories!", extra={'details': {'index': target}})
    try:
        es.indices.delete(**delete_index_request(config))
        es.indices.create(**create_index_request(config))
        result = sync_stories(
            es, storyblok, config,
            per_page=config.storyblok.per_page,
            environment=config.storyblok.environment,
        )
    except (SyncException,) + ELASTICSEARCH_ERRORS as e:
        raise FullSyncError(
            f"Full sync of {target} failed: {e}",
            source_id=target,
            recovery_suggestion="Run the full sync again from scratch",
        ) from e

    logger.info(
        f"Full sync of {target} finished: {result.indexed} indexed, {result.skipped} skipped, {result.failed} failed",
        extra={'details': {'index': target, 'pages': result.pages}}
    )
    return result
