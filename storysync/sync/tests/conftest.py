from unittest.mock import create_autospec

import pytest
from elasticsearch import Elasticsearch

from ..config import StorySyncConfig, StoryblokSettings, ElasticsearchSettings


@pytest.fixture
def config():
    """Typeless (8.x) engine, no environment filter, no cache purge."""
    return StorySyncConfig(
        storyblok=StoryblokSettings(token="test-token", per_page=100),
        elasticsearch=ElasticsearchSettings(api_version=8),
    )


@pytest.fixture
def legacy_config():
    """Pre-6 engine that still addresses documents by type."""
    return StorySyncConfig(
        storyblok=StoryblokSettings(token="test-token"),
        elasticsearch=ElasticsearchSettings(api_version=5),
    )


@pytest.fixture
def staging_config():
    return StorySyncConfig(
        storyblok=StoryblokSettings(token="test-token", environment="staging", invalidate="https://cdn.example.com/purge"),
        elasticsearch=ElasticsearchSettings(api_version=8),
    )


@pytest.fixture
def production_config():
    return StorySyncConfig(
        storyblok=StoryblokSettings(token="test-token", environment="production"),
        elasticsearch=ElasticsearchSettings(api_version=8),
    )


@pytest.fixture
def strict_es():
    """Elasticsearch double with the real client's signatures: unknown keywords raise TypeError."""
    client = create_autospec(Elasticsearch, instance=True)
    client.exists.return_value = False
    return client
