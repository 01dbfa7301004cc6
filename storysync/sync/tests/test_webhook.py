"""
Tests for webhook reconciliation.
"""

import json
from unittest.mock import MagicMock, Mock, patch

import pytest
from elasticsearch import ConnectionError as ESConnectionError, NotFoundError
from pydantic import ValidationError

from ..error_tracker import InvalidSlugError, MissingStoryError
from ..invalidator import CacheInvalidator
from ..webhook import CacheBuster, WebhookEvent, WebhookReconciler, WebhookStatus
from .fakes import FakeStoryblok, make_story


@pytest.fixture
def es():
    client = MagicMock()
    client.exists.return_value = False
    return client


@pytest.fixture
def invalidator():
    mock = Mock(spec=CacheInvalidator)
    mock.invalidate.return_value = True
    return mock


@pytest.fixture
def staging_story():
    return make_story(42, '/blog/staging-only/', tag_list=['publish-staging'])


class TestWebhookEvent:

    def test_extra_fields_ignored(self):
        event = WebhookEvent.model_validate({'story_id': 42, 'action': 'published', 'text': 'x', 'space_id': 1})
        assert event.story_id == 42
        assert event.known_action.value == 'published'

    def test_unknown_action(self):
        assert WebhookEvent(action='moved', story_id=1).known_action is None

    def test_action_required(self):
        with pytest.raises(ValidationError):
            WebhookEvent.model_validate({'story_id': 42})


class TestCacheBuster:

    def test_strictly_increasing(self):
        buster = CacheBuster()
        values = [buster.next() for _ in range(50)]
        assert values == sorted(set(values))

    def test_increasing_when_clock_stalls(self):
        buster = CacheBuster()
        with patch('storysync.sync.webhook.time.time_ns', return_value=1_000_000_000_000):
            assert buster.next() == 1_000_000
            assert buster.next() == 1_000_001


class TestPublished:

    def test_indexes_fresh_story(self, config, es, invalidator):
        story = make_story(42, '/blog/post/')
        storyblok = FakeStoryblok(stories={42: story})
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        path, params = storyblok.calls[0]
        assert path == 'cdn/stories/42'
        assert params['resolve_links'] == 'url'
        assert isinstance(params['cv'], int)

        kwargs = es.index.call_args.kwargs
        assert kwargs['index'] == 'storyblok_stories_story'
        assert kwargs['id'] == 42
        assert kwargs['document']['full_slug'] == 'blog/post'
        assert json.loads(kwargs['document']['content']) == story['content']

        assert result.status == WebhookStatus.PUBLISHED
        assert result.cache_tag == 'SB42'
        invalidated = invalidator.invalidate.call_args.args[0]
        assert invalidated['cache_tag'] == 'SB42'
        assert result.invalidated is True

    def test_cache_buster_changes_between_fetches(self, config, es, invalidator):
        storyblok = FakeStoryblok(stories={42: make_story(42, 'a')})
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        reconciler.handle_hook({'story_id': 42, 'action': 'published'})
        reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        first, second = [params['cv'] for _, params in storyblok.calls]
        assert second > first

    def test_matching_environment_is_indexed(self, staging_config, es, invalidator, staging_story):
        storyblok = FakeStoryblok(stories={42: staging_story})
        reconciler = WebhookReconciler(es, storyblok, staging_config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        assert result.status == WebhookStatus.PUBLISHED
        es.index.assert_called_once()
        es.exists.assert_not_called()

    def test_environment_mismatch_deletes_existing_document(self, production_config, es, invalidator, staging_story):
        es.exists.return_value = True
        storyblok = FakeStoryblok(stories={42: staging_story})
        reconciler = WebhookReconciler(es, storyblok, production_config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        es.exists.assert_called_once_with(index='storyblok_stories_story', id=42)
        es.delete.assert_called_once_with(index='storyblok_stories_story', id=42)
        es.index.assert_not_called()
        assert result.status == WebhookStatus.ENVIRONMENT_MISMATCH
        assert result.full_slug == 'blog/staging-only'
        assert invalidator.invalidate.call_args.args[0]['cache_tag'] == 'SB42'

    def test_environment_mismatch_without_document_is_skipped(self, production_config, es, invalidator, staging_story):
        es.exists.return_value = False
        storyblok = FakeStoryblok(stories={42: staging_story})
        reconciler = WebhookReconciler(es, storyblok, production_config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        es.delete.assert_not_called()
        es.index.assert_not_called()
        invalidator.invalidate.assert_not_called()
        assert result.status == WebhookStatus.SKIPPED
        assert result.invalidated is False

    def test_environment_mismatch_with_malformed_slug_keeps_document(self, production_config, es, invalidator):
        es.exists.return_value = True
        story = make_story(42, 'blog//broken', tag_list=['publish-staging'])
        reconciler = WebhookReconciler(es, FakeStoryblok(stories={42: story}), production_config, invalidator=invalidator)

        with pytest.raises(InvalidSlugError):
            reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        es.delete.assert_not_called()
        invalidator.invalidate.assert_not_called()

    def test_legacy_publish_uses_client_signature(self, legacy_config, strict_es, invalidator):
        storyblok = FakeStoryblok(stories={42: make_story(42, '/blog/post/')})
        reconciler = WebhookReconciler(strict_es, storyblok, legacy_config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'published'})

        kwargs = strict_es.index.call_args.kwargs
        assert set(kwargs) == {'index', 'id', 'document'}
        assert kwargs['index'] == 'storyblok_stories'
        assert result.status == WebhookStatus.PUBLISHED

    def test_missing_story_id(self, config, es, invalidator):
        reconciler = WebhookReconciler(es, FakeStoryblok(), config, invalidator=invalidator)
        with pytest.raises(MissingStoryError):
            reconciler.handle_hook({'action': 'published'})
        invalidator.invalidate.assert_not_called()

    def test_story_gone_at_source(self, config, es, invalidator):
        reconciler = WebhookReconciler(es, FakeStoryblok(stories={}), config, invalidator=invalidator)
        with pytest.raises(MissingStoryError):
            reconciler.handle_hook({'story_id': 7, 'action': 'published'})
        es.index.assert_not_called()

    def test_index_failure_propagates_without_invalidation(self, config, es, invalidator):
        es.index.side_effect = ESConnectionError("connection refused")
        storyblok = FakeStoryblok(stories={42: make_story(42, 'a')})
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        with pytest.raises(ESConnectionError):
            reconciler.handle_hook({'story_id': 42, 'action': 'published'})
        invalidator.invalidate.assert_not_called()


class TestUnpublished:

    def test_deletes_by_locator_without_fetching(self, config, es, invalidator):
        storyblok = FakeStoryblok()
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'unpublished'})

        es.delete.assert_called_once_with(index='storyblok_stories_story', id=42)
        assert storyblok.calls == []
        assert result.status == WebhookStatus.UNPUBLISHED
        invalidator.invalidate.assert_called_once_with(None)

    def test_legacy_delete_uses_client_signature(self, legacy_config, strict_es, invalidator):
        reconciler = WebhookReconciler(strict_es, FakeStoryblok(), legacy_config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'unpublished'})

        strict_es.delete.assert_called_once_with(index='storyblok_stories', id=42)
        assert result.status == WebhookStatus.UNPUBLISHED

    def test_absent_document_is_tolerated(self, config, es, invalidator):
        es.delete.side_effect = NotFoundError("not_found", Mock(status=404), {'found': False})
        reconciler = WebhookReconciler(es, FakeStoryblok(), config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'unpublished'})

        assert result.status == WebhookStatus.UNPUBLISHED
        invalidator.invalidate.assert_called_once_with(None)


class TestOtherActions:

    def test_branch_deployed_runs_full_sync(self, config, es, invalidator):
        storyblok = FakeStoryblok()
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        with patch('storysync.sync.webhook.full_sync') as mock_full_sync:
            result = reconciler.handle_hook({'action': 'branch_deployed'})

        mock_full_sync.assert_called_once_with(es, storyblok, config)
        assert result.status == WebhookStatus.RESYNCED
        invalidator.invalidate.assert_called_once_with(None)

    def test_failed_resync_still_invalidates(self, config, es, invalidator):
        es.bulk.return_value = {'errors': False, 'items': []}
        storyblok = FakeStoryblok(
            pages={1: [make_story(i, f'page-{i}') for i in range(1, 101)]},
            total=200,
            fail_on_page=2,
        )
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        result = reconciler.handle_hook({'action': 'branch_deployed'})

        assert result.status == WebhookStatus.RESYNC_FAILED
        assert 'page 2 failed' in result.error
        es.bulk.assert_called_once()
        invalidator.invalidate.assert_called_once_with(None)
        assert result.invalidated is True

    def test_unknown_action_is_noop_but_invalidates(self, config, es, invalidator):
        storyblok = FakeStoryblok()
        reconciler = WebhookReconciler(es, storyblok, config, invalidator=invalidator)

        result = reconciler.handle_hook({'story_id': 42, 'action': 'moved'})

        assert result.status == WebhookStatus.IGNORED
        assert storyblok.calls == []
        es.index.assert_not_called()
        es.delete.assert_not_called()
        invalidator.invalidate.assert_called_once_with(None)

    def test_result_to_dict(self, config, es, invalidator):
        reconciler = WebhookReconciler(es, FakeStoryblok(), config, invalidator=invalidator)
        data = reconciler.handle_hook({'story_id': 42, 'action': 'unpublished'}).to_dict()
        assert data == {
            'action': 'unpublished',
            'status': 'unpublished',
            'story_id': 42,
            'full_slug': None,
            'cache_tag': None,
            'invalidated': True,
            'error': None,
        }
