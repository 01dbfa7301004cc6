"""
Tests for visual editor token validation.
"""

import hashlib

import pytest

from ..config import StorySyncConfig, StoryblokSettings
from ..editor import editor_token, validate_editor
from ..error_tracker import UnauthorizedEditorError

NOW = 1_700_000_000


@pytest.fixture
def editor_config():
    return StorySyncConfig(storyblok=StoryblokSettings(preview_token="preview-secret"))


class TestEditorToken:

    def test_sha1_of_joined_fields(self):
        expected = hashlib.sha1(b"12345:preview-secret:1700000000").hexdigest()
        assert editor_token(12345, "preview-secret", 1700000000) == expected


class TestValidateEditor:

    def test_accepts_fresh_token(self, editor_config):
        token = editor_token("12345", "preview-secret", NOW)
        result = validate_editor(editor_config, "12345", str(NOW), token, now=NOW)
        assert result == {'previewToken': "preview-secret", 'error': False}

    def test_rejects_expired_token(self, editor_config):
        timestamp = NOW - 4000
        token = editor_token("12345", "preview-secret", timestamp)
        with pytest.raises(UnauthorizedEditorError):
            validate_editor(editor_config, "12345", str(timestamp), token, now=NOW)

    def test_same_token_with_old_timestamp_rejected(self, editor_config):
        token = editor_token("12345", "preview-secret", NOW)
        with pytest.raises(UnauthorizedEditorError):
            validate_editor(editor_config, "12345", str(NOW - 4000), token, now=NOW)

    def test_rejects_wrong_token(self, editor_config):
        with pytest.raises(UnauthorizedEditorError):
            validate_editor(editor_config, "12345", str(NOW), "0" * 40, now=NOW)

    def test_rejects_wrong_space(self, editor_config):
        token = editor_token("12345", "preview-secret", NOW)
        with pytest.raises(UnauthorizedEditorError):
            validate_editor(editor_config, "99999", str(NOW), token, now=NOW)

    def test_rejects_unparsable_timestamp(self, editor_config):
        token = editor_token("12345", "preview-secret", "yesterday")
        with pytest.raises(UnauthorizedEditorError):
            validate_editor(editor_config, "12345", "yesterday", token, now=NOW)

    def test_rejects_without_preview_token(self, config):
        token = editor_token("12345", "", NOW)
        with pytest.raises(UnauthorizedEditorError):
            validate_editor(config, "12345", str(NOW), token, now=NOW)
