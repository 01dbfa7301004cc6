import json
import sys

import click

from .config import get_logger
from .sync.config import load_config
from .sync.error_tracker import ConfigurationError, SyncException, UnauthorizedEditorError
from .sync.orchestrator import SyncOrchestrator

logger = get_logger(__name__)


@click.group()
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='YAML configuration file (defaults to STORYBLOK_* / ES_* environment variables)')
@click.pass_context
def cli(ctx, config_path):
    """Keep an Elasticsearch index in sync with published Storyblok stories."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


def get_orchestrator(ctx) -> SyncOrchestrator:
    if 'orchestrator' not in ctx.obj:
        try:
            config = load_config(ctx.obj.get('config_path'))
        except ConfigurationError as e:
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(2)
        ctx.obj['orchestrator'] = SyncOrchestrator(config)
    return ctx.obj['orchestrator']


@cli.command(name='full-sync')
@click.pass_context
def full_sync_command(ctx):
    """Delete, recreate and repopulate the index."""
    orchestrator = get_orchestrator(ctx)
    click.echo(f"Syncing published stories into {orchestrator.index_name}")
    summary = orchestrator.full_sync()
    click.echo(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    if summary.status != 'success':
        sys.exit(1)


@cli.command(name='seed')
@click.pass_context
def seed_command(ctx):
    """Check Elasticsearch connectivity, then run a full sync."""
    synced = get_orchestrator(ctx).seed()
    click.echo("Stories synced!" if synced else "Stories not synced!")
    if not synced:
        sys.exit(1)


@cli.command(name='hook')
@click.argument('story_id', type=click.STRING)
@click.argument('action', type=click.STRING)
@click.pass_context
def hook_command(ctx, story_id, action):
    """Apply a webhook event (published / unpublished / branch_deployed) by hand."""
    try:
        result = get_orchestrator(ctx).handle_hook({'story_id': story_id, 'action': action})
    except SyncException as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))


@cli.command(name='find')
@click.argument('path', type=click.STRING)
@click.pass_context
def find_command(ctx, path):
    """Look up an indexed story by its full slug."""
    story = get_orchestrator(ctx).get_story(path)
    click.echo(json.dumps(story, indent=2, ensure_ascii=False))


@cli.command(name='validate-editor')
@click.argument('space_id', type=click.STRING)
@click.argument('timestamp', type=click.STRING)
@click.argument('token', type=click.STRING)
@click.pass_context
def validate_editor_command(ctx, space_id, timestamp, token):
    """Check a visual editor token."""
    try:
        get_orchestrator(ctx).validate_editor(space_id, timestamp, token)
    except UnauthorizedEditorError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo("Authorized")


@cli.command(name='serve')
@click.option('--host', type=str, default='0.0.0.0')
@click.option('--port', type=int, default=8080)
@click.option('--seed/--no-seed', default=True, help='Run a full sync before serving')
@click.pass_context
def serve_command(ctx, host, port, seed):
    """Serve the webhook endpoint."""
    import uvicorn
    from .server import create_app

    orchestrator = get_orchestrator(ctx)
    if seed:
        orchestrator.seed()
    logger.info(f"Serving webhooks on {host}:{port}")
    uvicorn.run(create_app(orchestrator), host=host, port=port)


def main():
    cli()

if __name__ == '__main__':
    main()
