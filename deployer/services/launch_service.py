import asyncio
import json
from typing import Any, Callable, Dict, Optional, Set

from deployer.core.exceptions import AppBaseError, LaunchError, PlatformError
from deployer.core.logging_config import get_logger
from deployer.core.schemas import DeploymentOutcome
from deployer.services.cf_client import CloudFoundryClient

logger = get_logger(__name__)

# Checks still waiting for their delay to elapse; cancelled on shutdown.
PENDING_STATUS_CHECKS: Set["StatusCheck"] = set()


def route_url(summary: Dict[str, Any]) -> str:
    routes = summary.get("routes") or []
    if not routes:
        return ""
    route = routes[0]
    host = route.get("host")
    domain = (route.get("domain") or {}).get("name")
    if not host or not domain:
        return ""
    return f"http://{host}.{domain}"


def outcome_from_summary(summary: Optional[Dict[str, Any]]) -> DeploymentOutcome:
    """A 'started' app reports its first route URL; any other state is unknown."""
    if summary and str(summary.get("state", "")).lower() == "started":
        return DeploymentOutcome(state="started", url=route_url(summary))
    return DeploymentOutcome(state="unknown")


async def start_application(cf: CloudFoundryClient, app_guid: str) -> None:
    try:
        await asyncio.to_thread(cf.start_app, app_guid)
    except PlatformError as e:
        logger.error(f"Platform rejected start of application {app_guid}: {e.description}")
        raise LaunchError(f"Application could not be started: {e.description}")
    logger.info(f"Application {app_guid} was started.")


async def check_status(cf: CloudFoundryClient, app_guid: str, delay: float) -> DeploymentOutcome:
    """Waits once for the delay, then reads the app summary exactly once."""
    await asyncio.sleep(delay)
    logger.info(f"Obtaining app summary for {app_guid}")
    try:
        summary = await asyncio.to_thread(cf.get_app_summary, app_guid)
    except AppBaseError as e:
        logger.error(f"App summary for {app_guid} could not be obtained: {e.message}")
        return DeploymentOutcome(state="unknown")
    logger.info(f"Obtained app summary for {app_guid}: {json.dumps(summary, default=str)}")
    return outcome_from_summary(summary)


class StatusCheck:
    """Handle on the one-shot delayed status check of a started application."""

    def __init__(self, task: "asyncio.Task[DeploymentOutcome]"):
        self.task = task

    def cancel(self) -> bool:
        return self.task.cancel()

    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> DeploymentOutcome:
        return await self.task


def schedule_status_check(
    cf: CloudFoundryClient,
    app_guid: str,
    delay: float,
    report: Callable[[DeploymentOutcome], None]
) -> StatusCheck:
    async def run() -> DeploymentOutcome:
        outcome = await check_status(cf, app_guid, delay)
        report(outcome)
        return outcome

    check = StatusCheck(asyncio.create_task(run(), name=f"status-check-{app_guid}"))
    PENDING_STATUS_CHECKS.add(check)
    check.task.add_done_callback(lambda _: PENDING_STATUS_CHECKS.discard(check))
    return check


def cancel_pending_checks() -> int:
    pending = list(PENDING_STATUS_CHECKS)
    for check in pending:
        check.cancel()
    if pending:
        logger.info(f"Cancelled {len(pending)} pending status checks")
    return len(pending)
