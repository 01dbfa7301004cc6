"""
Sync engine keeping an Elasticsearch index in step with published Storyblok stories.

Provides full resyncs (paginated bulk indexing), webhook reconciliation,
cache purging and startup seeding.
"""

from .config import (
    StorySyncConfig, StoryblokSettings, ElasticsearchSettings, create_example_config, load_config
)

from .identity import (
    DocumentLocator, index_name, entity_type, document_locator, cache_tag,
    normalize_slug, publish_environments, is_published_for
)

from .transformer import transform_story, prepare_story

from .bulk import build_bulk_operations

from .paginator import FullSyncResult, StoryPage, iter_pages, sync_stories, full_sync

from .webhook import WebhookEvent, WebhookReconciler, WebhookResult, WebhookStatus

from .invalidator import CacheInvalidator

from .seeder import seed_database

from .editor import validate_editor

from .orchestrator import SyncOrchestrator, SyncSummary

__all__ = [
    # Configuration
    'StorySyncConfig',
    'StoryblokSettings',
    'ElasticsearchSettings',
    'create_example_config',
    'load_config',

    # Identity
    'DocumentLocator',
    'index_name',
    'entity_type',
    'document_locator',
    'cache_tag',
    'normalize_slug',
    'publish_environments',
    'is_published_for',

    # Transformation
    'transform_story',
    'prepare_story',
    'build_bulk_operations',

    # Sync
    'FullSyncResult',
    'StoryPage',
    'iter_pages',
    'sync_stories',
    'full_sync',
    'WebhookEvent',
    'WebhookReconciler',
    'WebhookResult',
    'WebhookStatus',
    'CacheInvalidator',
    'seed_database',
    'validate_editor',

    # Orchestration
    'SyncOrchestrator',
    'SyncSummary',
]
