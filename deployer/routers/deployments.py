from fastapi import APIRouter, Body, Depends, HTTPException, Request
from typing import Dict, List

from deployer.core import messages
from deployer.core.config import settings
from deployer.core.exceptions import ConfigurationError, DialogDeclined, ResolutionError
from deployer.core.limiter import limiter
from deployer.core.logging_config import get_logger
from deployer.core.schemas import DeployCommandRequest, DeployCommandResponse
from deployer.services.app_registry import AppRegistry
from deployer.services.cf_client import CloudFoundryClient
from deployer.services.dialog_service import ScriptedDialog
from deployer.services.github_service import GitHubService
from deployer.services.input_resolver import InputResolver
from deployer.services.orchestration_service import (
    DeploymentPipeline,
    handle_deploy_command,
    handle_deploy_intent
)

logger = get_logger(__name__)

router = APIRouter(tags=["Deployments"])


def get_registry(request: Request) -> AppRegistry:
    return request.app.state.registry


def get_cf_client() -> CloudFoundryClient:
    return CloudFoundryClient(settings)


def get_github_service() -> GitHubService:
    return GitHubService(settings)


@router.post("/deployments", response_model=DeployCommandResponse)
@limiter.limit(settings.DEPLOY_RATE_LIMIT)
async def create_deployment(
    request: Request,
    payload: DeployCommandRequest = Body(...),
    registry: AppRegistry = Depends(get_registry),
    cf: CloudFoundryClient = Depends(get_cf_client),
    github: GitHubService = Depends(get_github_service)
) -> DeployCommandResponse:
    """
    Runs one deploy command. Clarification prompts are answered from
    `payload.responses` in order; running out of answers is treated as a
    timeout. The response returns once the app is starting; the final
    status check continues in the background and is only logged.
    """
    collected: List[str] = []
    responded = False

    def notify(message: str) -> None:
        if responded:
            logger.info(f"Deployment update: {message}")
            return
        collected.append(message)

    dialog = ScriptedDialog(payload.responses, notify=notify, timeout_message=messages.OK_ANOTHER_TIME)
    resolver = InputResolver(registry, github, dialog, notify)
    pipeline = DeploymentPipeline(cf, github, notify, settings)

    logger.info(f"Received deploy command. Text: {payload.text!r}, App: {payload.app_name}, Url: {payload.url}")
    try:
        if payload.is_intent():
            handle = await handle_deploy_intent(payload.app_name, payload.url, resolver, pipeline)
        else:
            tokens = (payload.text or "").split()
            if tokens == ["help"]:
                return DeployCommandResponse(status="help", messages=[messages.HELP])
            handle = await handle_deploy_command(tokens, resolver, pipeline)
    except DialogDeclined as e:
        logger.info(f"Deploy command declined: {e.message}")
        return DeployCommandResponse(status="declined", messages=collected, error=e.message)
    except ResolutionError as e:
        logger.warning(f"Deploy command could not be resolved: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)
    except ConfigurationError as e:
        logger.error(f"Deployment is not configured: {e.message}")
        raise HTTPException(status_code=503, detail=e.message)
    finally:
        responded = True

    if handle.failed:
        return DeployCommandResponse(
            status="failed",
            messages=collected,
            request=handle.request,
            app_guid=handle.app_guid,
            error=handle.failure.error
        )
    return DeployCommandResponse(
        status="starting",
        messages=list(collected),
        request=handle.request,
        app_guid=handle.app_guid
    )


@router.get("/apps")
async def list_apps(registry: AppRegistry = Depends(get_registry)) -> Dict[str, str]:
    return await registry.snapshot()
