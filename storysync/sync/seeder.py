"""
Startup seeding: check Elasticsearch, then run a full sync.

Best-effort bootstrap. Failures are logged and never raised, so the host can
keep serving traffic with whatever the index already holds.
"""

from .config import StorySyncConfig
from .error_tracker import ExternalServiceError
from .logging_manager import get_logger
from .paginator import full_sync
from .storyblok_client import StoryblokClient

logger = get_logger(__name__)


def seed_database(es, storyblok: StoryblokClient, config: StorySyncConfig) -> bool:
    try:
        if not es.ping():
            raise ExternalServiceError("Could not ping Elasticsearch", source_id=config.elasticsearch.host)
        result = full_sync(es, storyblok, config)
        logger.info("Stories synced!", extra={'details': {'indexed': result.indexed, 'pages': result.pages}})
        return True
    except Exception as e:
        logger.error(f"Stories not synced! {e}", extra={'details': {'exception': str(e)}})
        return False
