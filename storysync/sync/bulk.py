"""
Bulk request builder.

The bulk API is positional: every action header must be followed by the
document it applies to. ``build_bulk_operations`` always emits header/body
pairs in input order.
"""

from typing import Any, Dict, Iterable, List

from .config import StorySyncConfig
from .identity import document_locator
from .transformer import serialize_content


def bulk_action_header(config: StorySyncConfig, story_id: Any) -> Dict[str, Dict[str, Any]]:
    locator = document_locator(config, story_id)
    header = {'_id': locator.id, '_index': locator.index}
    if locator.typed:
        header['_type'] = locator.type
    return {'index': header}


def build_bulk_operations(config: StorySyncConfig, stories: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Build the operations of one bulk write.

    Args:
        config: Engine configuration (index naming)
        stories: Prepared stories; ``content`` may still be nested

    Returns:
        ``[header, body, header, body, ...]``, empty for no stories
    """
    operations: List[Dict[str, Any]] = []
    for story in stories:
        operations.append(bulk_action_header(config, story.get('id')))
        operations.append({**story, 'content': serialize_content(story.get('content'))})
    return operations
