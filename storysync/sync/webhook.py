"""
Webhook reconciliation.

Each Storyblok webhook is handled on its own, with no state kept between
calls:

- ``published``: fetch the story fresh (cache-busted) and upsert it, or remove
  it when its ``publish-<env>`` tags exclude the configured environment.
- ``unpublished``: delete the document by id.
- ``branch_deployed``: run a full sync. A failed resync is logged and
  reported as ``resync_failed``; the cache is still purged.
- anything else: nothing to do.

The cache is purged after every event except when a mismatching story was
never indexed. Concurrent deliveries for the same story are not serialized;
the last write to reach Elasticsearch wins.
"""

import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from elasticsearch import NotFoundError
from pydantic import BaseModel, ConfigDict

from .config import StorySyncConfig
from .error_tracker import FullSyncError, MissingStoryError
from .identity import document_locator, is_published_for, publish_environments
from .invalidator import CacheInvalidator
from .logging_manager import get_logger
from .paginator import full_sync
from .storyblok_client import StoryblokClient
from .transformer import prepare_story, transform_story

logger = get_logger(__name__)


class WebhookAction(str, Enum):
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    BRANCH_DEPLOYED = "branch_deployed"


class WebhookStatus(str, Enum):
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    ENVIRONMENT_MISMATCH = "unpublished_environment_mismatch"
    SKIPPED = "skipped"
    RESYNCED = "resynced"
    RESYNC_FAILED = "resync_failed"
    IGNORED = "ignored"


class WebhookEvent(BaseModel):
    """Inbound webhook payload. Extra Storyblok fields are ignored."""
    model_config = ConfigDict(extra='ignore')

    story_id: Optional[Union[int, str]] = None
    action: str

    @property
    def known_action(self) -> Optional[WebhookAction]:
        try:
            return WebhookAction(self.action)
        except ValueError:
            return None


@dataclass
class WebhookResult:
    action: str
    status: WebhookStatus
    story_id: Optional[Union[int, str]] = None
    full_slug: Optional[str] = None
    cache_tag: Optional[str] = None
    invalidated: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data


class CacheBuster:
    """Strictly increasing ``cv`` values, based on the clock in milliseconds."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._last = max(time.time_ns() // 1_000_000, self._last + 1)
            return self._last


class WebhookReconciler:
    def __init__(self, es, storyblok: StoryblokClient, config: StorySyncConfig,
                 invalidator: Optional[CacheInvalidator] = None, cache_buster: Optional[CacheBuster] = None):
        self.es = es
        self.storyblok = storyblok
        self.config = config
        self.invalidator = invalidator or CacheInvalidator.from_settings(config.storyblok)
        self.cache_buster = cache_buster or CacheBuster()

    def handle_hook(self, event: Union[WebhookEvent, Dict[str, Any]]) -> WebhookResult:
        """
        Apply one webhook event to the index, then purge the cache.

        Elasticsearch and Storyblok failures propagate; the index keeps
        whatever state it had reached.
        """
        if not isinstance(event, WebhookEvent):
            event = WebhookEvent.model_validate(event)

        action = event.known_action
        invalidated_story = None

        if action == WebhookAction.PUBLISHED:
            result, invalidated_story = self._publish(event)
            if result.status == WebhookStatus.SKIPPED:
                return result
        elif action == WebhookAction.UNPUBLISHED:
            result = self._unpublish(event)
        elif action == WebhookAction.BRANCH_DEPLOYED:
            result = self._resync(event)
        else:
            logger.info(f"Ignoring webhook action: {event.action}", extra={'details': {'story_id': event.story_id}})
            result = WebhookResult(action=event.action, status=WebhookStatus.IGNORED, story_id=event.story_id)

        result.invalidated = self.invalidator.invalidate(invalidated_story)
        return result

    def fetch_story(self, story_id: Union[int, str]) -> Dict[str, Any]:
        response = self.storyblok.get(f'cdn/stories/{story_id}', {
            'cv': self.cache_buster.next(),
            'resolve_links': self.config.storyblok.resolve_links,
        })
        story = response.data.get('story')
        if not story:
            raise MissingStoryError(f"Storyblok returned no story for id {story_id}", source_id=str(story_id))
        return story

    def _publish(self, event: WebhookEvent) -> Tuple[WebhookResult, Optional[Dict[str, Any]]]:
        story_id = self._require_story_id(event)
        story = self.fetch_story(story_id)
        environment = self.config.storyblok.environment

        if not is_published_for(story, environment):
            locator = document_locator(self.config, story_id)
            if self.es.exists(**locator.as_request()):
                prepared = prepare_story(story)
                self.es.delete(**locator.as_request())
                logger.info(
                    f"Unpublished {prepared['full_slug']} (not published for {environment})",
                    extra={'details': {'story_id': story_id, 'environments': publish_environments(story)}}
                )
                result = WebhookResult(
                    action=event.action,
                    status=WebhookStatus.ENVIRONMENT_MISMATCH,
                    story_id=story_id,
                    full_slug=prepared['full_slug'],
                    cache_tag=prepared['cache_tag'],
                )
                return result, prepared

            logger.info(f"Skipped {story.get('full_slug')}", extra={'details': {'story_id': story_id}})
            result = WebhookResult(
                action=event.action,
                status=WebhookStatus.SKIPPED,
                story_id=story_id,
                full_slug=story.get('full_slug'),
            )
            return result, None

        transformed = transform_story(self.config, story)
        self.es.index(**transformed.as_request())
        logger.info(f"Published {transformed.body['full_slug']}", extra={'details': {'story_id': story_id}})
        result = WebhookResult(
            action=event.action,
            status=WebhookStatus.PUBLISHED,
            story_id=story_id,
            full_slug=transformed.body['full_slug'],
            cache_tag=transformed.body['cache_tag'],
        )
        return result, transformed.body

    def _unpublish(self, event: WebhookEvent) -> WebhookResult:
        story_id = self._require_story_id(event)
        locator = document_locator(self.config, story_id)
        try:
            self.es.delete(**locator.as_request())
            logger.info(f"Unpublished {story_id}", extra={'details': {'story_id': story_id}})
        except NotFoundError:
            logger.info(f"Story {story_id} was not indexed, nothing to unpublish", extra={'details': {'story_id': story_id}})
        return WebhookResult(action=event.action, status=WebhookStatus.UNPUBLISHED, story_id=story_id)

    def _resync(self, event: WebhookEvent) -> WebhookResult:
        try:
            full_sync(self.es, self.storyblok, self.config)
        except FullSyncError as e:
            logger.error(f"Resync after '{event.action}' failed: {e.message}", extra={'details': {'index': e.source_id}})
            return WebhookResult(action=event.action, status=WebhookStatus.RESYNC_FAILED, error=e.message)
        return WebhookResult(action=event.action, status=WebhookStatus.RESYNCED)

    @staticmethod
    def _require_story_id(event: WebhookEvent) -> Union[int, str]:
        if event.story_id is None or event.story_id == '':
            raise MissingStoryError(f"Webhook '{event.action}' has no story_id")
        return event.story_id
