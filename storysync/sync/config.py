"""
Configuration Schema for the Storyblok → Elasticsearch Sync Engine.

One StorySyncConfig object is built at startup (from YAML or environment
variables) and passed explicitly to every component. Models are frozen, so the
configuration stays read-only after initialization.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..config import (
    DEFAULT_INDEX, DEFAULT_ENTITY, DEFAULT_FIELD_LIMIT, DEFAULT_PER_PAGE,
    DEFAULT_API_VERSION, DEFAULT_STORYBLOK_API_URL, DEFAULT_RESOLVE_LINKS,
)
from .error_tracker import ConfigurationError


class StoryblokSettings(BaseModel):
    """Content source and index naming settings."""
    model_config = ConfigDict(frozen=True)

    token: Optional[str] = Field(None, description="Content delivery API token")
    api_url: str = Field(default=DEFAULT_STORYBLOK_API_URL, description="Content delivery API base URL")
    index: str = Field(default=DEFAULT_INDEX, description="Base index name")
    entity: str = Field(default=DEFAULT_ENTITY, description="Entity (document type) name")
    field_limit: int = Field(default=DEFAULT_FIELD_LIMIT, ge=1, description="index.mapping.total_fields.limit")
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1, le=100, description="Stories fetched per page during a full sync")
    environment: Optional[str] = Field(None, description="Target environment matched against publish-<env> tags")
    preview_token: Optional[str] = Field(None, description="Preview token used to validate visual editor requests")
    invalidate: Optional[str] = Field(None, description="Cache purge endpoint, called after every webhook")
    resolve_links: str = Field(default=DEFAULT_RESOLVE_LINKS, description="resolve_links parameter sent to Storyblok")
    timeout: int = Field(default=30, description="Request timeout in seconds")

    @field_validator('index', 'entity', mode='before')
    @classmethod
    def default_when_empty(cls, v, info):
        """Empty names fall back to the defaults."""
        if not v:
            return DEFAULT_INDEX if info.field_name == 'index' else DEFAULT_ENTITY
        return v

    @field_validator('environment', 'preview_token', 'token', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('api_url')
    @classmethod
    def validate_api_url(cls, v):
        """Validate URL format and keep a trailing slash for path joining."""
        result = urlparse(v)
        if not all([result.scheme, result.netloc]):
            raise ValueError('Invalid URL format')
        return v if v.endswith('/') else f'{v}/'

    @field_validator('invalidate', mode='before')
    @classmethod
    def validate_invalidate(cls, v):
        if not v:
            return None
        result = urlparse(v)
        if not all([result.scheme, result.netloc]):
            raise ValueError('Invalid URL format')
        return v


class ElasticsearchSettings(BaseModel):
    """Search engine connection settings."""
    model_config = ConfigDict(frozen=True)

    api_version: int = Field(default=DEFAULT_API_VERSION, description="Major version of the Elasticsearch API")
    host: str = Field(default="http://localhost:9200", description="Elasticsearch endpoint (with scheme)")
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None
    ca_cert: Optional[str] = None
    timeout: int = 30

    @field_validator('api_version', mode='before')
    @classmethod
    def parse_major_version(cls, v):
        """Accept '7', '7.10.2' or 7 and keep the major version."""
        if v is None or v == '':
            return DEFAULT_API_VERSION
        if isinstance(v, str):
            return int(v.strip().split('.')[0])
        return int(v)

    @field_validator('host')
    @classmethod
    def normalize_host(cls, v: str) -> str:
        v = (v or "").strip().rstrip("/")
        if v and not v.startswith(("http://", "https://")):
            v = f"http://{v}"
        return v

    @property
    def uses_mapping_types(self) -> bool:
        """Whether requests still carry a mapping type on the wire."""
        return self.api_version < 7

    def to_elasticsearch_kwargs(self) -> Dict[str, Any]:
        """
        Convert configuration to Elasticsearch client kwargs.

        Returns:
            Dictionary of kwargs for Elasticsearch client initialization
        """
        kwargs: Dict[str, Any] = {
            'hosts': [self.host],
            'request_timeout': self.timeout,
        }
        if self.api_key:
            kwargs['api_key'] = self.api_key
        elif self.username and self.password:
            kwargs['basic_auth'] = (self.username, self.password)

        # Only add TLS options if using HTTPS
        if self.host.startswith('https://'):
            kwargs.update({
                'verify_certs': bool(self.ca_cert),
                'ca_certs': self.ca_cert,
                'ssl_show_warn': True
            })

        return kwargs


class StorySyncConfig(BaseModel):
    """Main configuration for the sync engine."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(default="storysync", description="Configuration name")
    storyblok: StoryblokSettings = Field(default_factory=StoryblokSettings)
    elasticsearch: ElasticsearchSettings = Field(default_factory=ElasticsearchSettings)

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(None, description="Log file path")

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'StorySyncConfig':
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode='json')

        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'StorySyncConfig':
        """
        Create configuration from environment variables.

        Unset variables keep their defaults. Variable names:
        STORYBLOK_TOKEN, STORYBLOK_API_URL, STORYBLOK_INDEX, STORYBLOK_ENTITY,
        STORYBLOK_FIELD_LIMIT, STORYBLOK_PER_PAGE, STORYBLOK_ENVIRONMENT,
        STORYBLOK_PREVIEW_TOKEN, STORYBLOK_INVALIDATE, ES_API_VERSION, ES_HOST,
        ES_USERNAME, ES_PASSWORD, ES_API_KEY, ES_CA_CERT, LOG_LEVEL, LOG_FILE.
        """
        env = os.environ if environ is None else environ

        def collect(prefix: str, keys) -> Dict[str, str]:
            values = {}
            for key in keys:
                value = env.get(f'{prefix}{key.upper()}')
                if value is not None:
                    values[key] = value
            return values

        storyblok = collect('STORYBLOK_', [
            'token', 'api_url', 'index', 'entity', 'field_limit', 'per_page',
            'environment', 'preview_token', 'invalidate',
        ])
        elasticsearch = collect('ES_', [
            'api_version', 'host', 'username', 'password', 'api_key', 'ca_cert',
        ])
        if 'password' not in elasticsearch and env.get('ELASTIC_PASSWORD'):
            elasticsearch['password'] = env['ELASTIC_PASSWORD']

        data: Dict[str, Any] = {
            'storyblok': storyblok,
            'elasticsearch': elasticsearch,
        }
        if env.get('LOG_LEVEL'):
            data['log_level'] = env['LOG_LEVEL']
        if env.get('LOG_FILE'):
            data['log_file'] = env['LOG_FILE']
        return cls(**data)


def load_config(path: Optional[Union[str, Path]] = None,
                environ: Optional[Mapping[str, str]] = None) -> StorySyncConfig:
    """
    Load the YAML file at ``path``, or the environment when no path is given.

    Raises:
        ConfigurationError: if the file is missing or unreadable, or the values fail validation
    """
    source = str(path) if path else 'environment'
    try:
        if path:
            return StorySyncConfig.from_yaml(path)
        return StorySyncConfig.from_environment(environ)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read configuration from {source}: {e}", source_id=source)
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(
            f"Invalid configuration in {source}: {e}",
            source_id=source,
            recovery_suggestion="Check the STORYBLOK_* and ES_* settings",
        )


def create_example_config() -> StorySyncConfig:
    """Create an example configuration for testing."""
    return StorySyncConfig(
        name="Example Sync Configuration",
        storyblok=StoryblokSettings(
            token="your-public-token",
            environment="production",
            preview_token="your-preview-token",
            invalidate="https://cdn.example.com/purge",
        ),
        elasticsearch=ElasticsearchSettings(
            api_version=8,
            host="http://localhost:9200",
        ),
    )


if __name__ == "__main__":
    config = create_example_config()
    config.to_yaml("example_storysync_config.yaml")
