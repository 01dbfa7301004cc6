"""
Sync Orchestration

Wires one StorySyncConfig to the Elasticsearch client, the Storyblok client
and the sync components, and is the single entry point used by the CLI and
the HTTP host:
- Full sync and startup seeding
- Webhook reconciliation
- Preview lookups and visual editor validation
- Error aggregation for reporting
"""

import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Union

from elasticsearch import Elasticsearch

from .config import StorySyncConfig
from .editor import validate_editor
from .error_tracker import (
    ErrorSeverity, ErrorTracker, ExternalServiceError, FullSyncError, SyncException,
)
from .identity import index_name
from .invalidator import CacheInvalidator
from .logging_manager import LoggingManager, get_logger
from .paginator import FullSyncResult, full_sync
from .search_adapter import ELASTICSEARCH_ERRORS, get_story
from .seeder import seed_database
from .storyblok_client import StoryblokClient
from .webhook import WebhookEvent, WebhookReconciler, WebhookResult, WebhookStatus


@dataclass
class SyncSummary:
    """Summary of a full sync run."""
    index: str
    status: str  # success, failed
    processing_time: float
    pages: int = 0
    documents_indexed: int = 0
    documents_skipped: int = 0
    documents_failed: int = 0
    error_message: Optional[str] = None
    errors: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SyncOrchestrator:
    """
    Main engine facade.

    Args:
        config: Engine configuration
        es_client: Elasticsearch client; built from config when omitted
        storyblok_client: Storyblok client; built from config when omitted
    """

    def __init__(self, config: StorySyncConfig, es_client=None,
                 storyblok_client: Optional[StoryblokClient] = None,
                 invalidator: Optional[CacheInvalidator] = None):
        self.config = config

        self.logging_manager = LoggingManager.configure(config.log_level, config.log_file)
        self.error_tracker = ErrorTracker()
        self.logger = get_logger(__name__)

        self.es = es_client if es_client is not None else Elasticsearch(**config.elasticsearch.to_elasticsearch_kwargs())
        self.storyblok = storyblok_client or StoryblokClient.from_settings(config.storyblok)
        self.invalidator = invalidator or CacheInvalidator.from_settings(config.storyblok)
        self.reconciler = WebhookReconciler(self.es, self.storyblok, config, invalidator=self.invalidator)

        self.logger.info(
            f"Sync orchestrator initialized for index: {self.index_name}",
            extra={'details': {'config_name': config.name, 'environment': config.storyblok.environment}}
        )

    @property
    def index_name(self) -> str:
        return index_name(self.config)

    def full_sync(self) -> SyncSummary:
        """Rebuild the index. Failures are logged and returned, never raised."""
        start_time = time.time()
        try:
            result: FullSyncResult = full_sync(self.es, self.storyblok, self.config)
        except FullSyncError as e:
            self.error_tracker.report_exception(e, ErrorSeverity.CRITICAL)
            self.logger.error(e.message, extra={'details': {'index': self.index_name}})
            return SyncSummary(
                index=self.index_name,
                status='failed',
                processing_time=time.time() - start_time,
                error_message=e.message,
            )

        for message in result.errors:
            self.error_tracker.report(message, source_id=result.index, severity=ErrorSeverity.WARNING)
        return SyncSummary(
            index=result.index,
            status='success',
            processing_time=time.time() - start_time,
            pages=result.pages,
            documents_indexed=result.indexed,
            documents_skipped=result.skipped,
            documents_failed=result.failed,
            errors=result.errors,
        )

    def seed(self) -> bool:
        return seed_database(self.es, self.storyblok, self.config)

    def handle_hook(self, payload: Union[WebhookEvent, Dict[str, Any]]) -> WebhookResult:
        """
        Reconcile one webhook event.

        A failed ``branch_deployed`` resync is reported as critical and
        returned with status ``resync_failed``.

        Raises:
            SyncException: the event could not be applied (reported and logged)
        """
        event = payload if isinstance(payload, WebhookEvent) else WebhookEvent.model_validate(payload)
        try:
            result = self.reconciler.handle_hook(event)
        except SyncException as e:
            self._report_hook_failure(event, e)
            raise
        except ELASTICSEARCH_ERRORS as e:
            error = ExternalServiceError(
                f"Elasticsearch request failed while handling '{event.action}': {e}",
                source_id=self._event_ref(event),
            )
            self._report_hook_failure(event, error)
            raise error from e

        if result.status == WebhookStatus.RESYNC_FAILED:
            self.error_tracker.report(
                result.error, source_id=self.index_name, severity=ErrorSeverity.CRITICAL,
                details={'action': event.action}, recovery_suggestion="Run the full sync again from scratch",
            )
        return result

    def get_story(self, path: str) -> Dict[str, Any]:
        return get_story(self.es, self.config, path)

    def validate_editor(self, space_id, timestamp, token) -> Dict[str, Any]:
        return validate_editor(self.config, space_id, timestamp, token)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'index': self.index_name,
            'healthy': not self.error_tracker.has_critical_errors(),
            'invalidation_enabled': self.invalidator.enabled,
            'errors': self.error_tracker.generate_report(),
        }

    def _report_hook_failure(self, event: WebhookEvent, error: SyncException) -> None:
        self.error_tracker.report_exception(error, ErrorSeverity.ERROR, details={'action': event.action})
        self.logger.error(f"Webhook failed: {error.message}", extra={'details': {'story_id': event.story_id, 'action': event.action}})

    @staticmethod
    def _event_ref(event: WebhookEvent) -> Optional[str]:
        return None if event.story_id is None else str(event.story_id)
