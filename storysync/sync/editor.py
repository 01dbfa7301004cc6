"""
Visual editor request validation.

Storyblok's editor sends ``space_id``, ``timestamp`` and ``token``, where
``token = sha1("<space_id>:<preview_token>:<timestamp>")``. Tokens are valid
for one hour.
"""

import hashlib
import hmac
import time
from typing import Any, Dict, Optional, Union

from .config import StorySyncConfig
from .error_tracker import UnauthorizedEditorError

EDITOR_TOKEN_TTL = 3600


def editor_token(space_id: Union[int, str], preview_token: str, timestamp: Union[int, str]) -> str:
    validation_string = f"{space_id}:{preview_token}:{timestamp}"
    return hashlib.sha1(validation_string.encode('utf-8')).hexdigest()


def validate_editor(config: StorySyncConfig, space_id: Union[int, str], timestamp: Union[int, str],
                    token: str, now: Optional[float] = None) -> Dict[str, Any]:
    """
    Raises:
        UnauthorizedEditorError: on a token mismatch, an expired or unparsable
            timestamp, or when no preview token is configured
    """
    preview_token = config.storyblok.preview_token
    if not preview_token:
        raise UnauthorizedEditorError("Unauthorized editor", recovery_suggestion="Set STORYBLOK_PREVIEW_TOKEN")

    try:
        issued_at = int(timestamp)
    except (TypeError, ValueError):
        raise UnauthorizedEditorError("Unauthorized editor")

    now = int(time.time()) if now is None else int(now)
    expected = editor_token(space_id, preview_token, timestamp)
    if hmac.compare_digest(str(token or ''), expected) and issued_at > now - EDITOR_TOKEN_TTL:
        return {
            'previewToken': preview_token,
            'error': False,
        }
    raise UnauthorizedEditorError("Unauthorized editor")
