import asyncio

import click

from deployer.core import messages
from deployer.core.config import settings
from deployer.core.exceptions import ConfigurationError, DialogDeclined, ResolutionError
from deployer.core.logging_config import get_logger, setup_logging
from deployer.services.app_registry import AppRegistry, FileAppRegistry
from deployer.services.cf_client import CloudFoundryClient
from deployer.services.dialog_service import ConsoleDialog
from deployer.services.github_service import GitHubService
from deployer.services.input_resolver import InputResolver
from deployer.services.orchestration_service import DeploymentPipeline, handle_deploy_command

logger = get_logger(__name__)


@click.group()
@click.option('--log-level', default=None, help='Override LOG_LEVEL for this run')
def cli(log_level):
    """Deploy GitHub repositories to Cloud Foundry"""
    setup_logging(log_level)


async def _run_deploy(tokens, registry: AppRegistry, wait: bool):
    notify = click.echo
    github = GitHubService(settings)
    dialog = ConsoleDialog(notify=notify)
    resolver = InputResolver(registry, github, dialog, notify)
    pipeline = DeploymentPipeline(CloudFoundryClient(settings), github, notify, settings)

    handle = await handle_deploy_command(tokens, resolver, pipeline)
    if handle.failed:
        return handle.failure
    if not wait:
        handle.cancel()
        return None
    return await handle.wait()


@cli.command()
@click.argument('tokens', nargs=-1)
@click.option('--registry', 'registry_path', default=None, help='JSON file of known applications')
@click.option('--wait/--no-wait', default=True, help='Wait for the delayed status check before exiting')
def deploy(tokens, registry_path, wait):
    """Deploy an application: deploy [APP] [URL]. Use `deploy help` for details."""
    if list(tokens) == ["help"]:
        click.echo(messages.HELP)
        return

    registry_path = registry_path or settings.APP_REGISTRY_PATH
    registry = FileAppRegistry(registry_path) if registry_path else AppRegistry()

    try:
        outcome = asyncio.run(_run_deploy(list(tokens), registry, wait))
    except DialogDeclined as e:
        logger.info(f"Deployment declined: {e.message}")
        return
    except (ResolutionError, ConfigurationError) as e:
        raise click.ClickException(e.message)

    if outcome is not None and outcome.state == "failed":
        raise click.ClickException(outcome.error or "Deployment failed")


@cli.command()
@click.option('--host', default='127.0.0.1', help='Interface to bind')
@click.option('--port', default=8000, type=int, help='Port to listen on')
@click.option('--reload', is_flag=True, help='Reload on code changes')
def serve(host, port, reload):
    """Run the HTTP API"""
    import uvicorn
    uvicorn.run("deployer.main:app", host=host, port=port, reload=reload)


if __name__ == '__main__':
    cli()
