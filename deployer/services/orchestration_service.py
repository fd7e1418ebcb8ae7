import asyncio
import pathlib
from typing import Callable, Optional, Sequence, Tuple

from deployer.core import messages
from deployer.core.config import Settings, settings as default_settings
from deployer.core.exceptions import AppBaseError, ConfigurationError, PackagingError, ProvisionError
from deployer.core.logging_config import get_logger
from deployer.core.schemas import DeploymentOutcome, DeploymentRequest, Space
from deployer.services import archive_service
from deployer.services import launch_service
from deployer.services import manifest_service
from deployer.services import provisioning_service
from deployer.services import upload_service
from deployer.services.cf_client import CloudFoundryClient
from deployer.services.github_service import GitHubService
from deployer.services.input_resolver import InputResolver

logger = get_logger(__name__)

Notifier = Callable[[str], None]


class DeploymentHandle:
    """Result of one pipeline run: either a failure, or a started app with a pending status check."""

    def __init__(
        self,
        request: DeploymentRequest,
        app_guid: Optional[str] = None,
        failure: Optional[DeploymentOutcome] = None,
        status_check: Optional[launch_service.StatusCheck] = None
    ):
        self.request = request
        self.app_guid = app_guid
        self.failure = failure
        self.status_check = status_check

    @property
    def failed(self) -> bool:
        return self.failure is not None

    async def wait(self) -> DeploymentOutcome:
        """Final outcome; for a started app this waits for the delayed status check."""
        if self.failure is not None:
            return self.failure
        return await self.status_check.wait()

    def cancel(self) -> None:
        """Abandons the deployment's pending status check, if any."""
        if self.status_check is not None:
            self.status_check.cancel()


class DeploymentPipeline:
    """
    Runs Fetch -> Restructure -> Parse -> Provision -> Upload -> Launch for one
    resolved request. The first fatal error stops the chain and produces a
    single failure notification; resources created before it are left in place.
    """

    def __init__(
        self,
        cf: CloudFoundryClient,
        github: GitHubService,
        notify: Notifier,
        config: Optional[Settings] = None
    ):
        self.cf = cf
        self.github = github
        self.notify = notify
        self.config = config or default_settings
        self._space: Optional[Space] = None

    async def resolve_space(self) -> Space:
        if self._space is None:
            if not self.config.CF_ORG or not self.config.CF_SPACE:
                raise ConfigurationError("CF_ORG and CF_SPACE must be configured.")
            self._space = await asyncio.to_thread(self.cf.get_space, self.config.CF_ORG, self.config.CF_SPACE)
            logger.info(f"Using space {self._space.name} ({self._space.guid}) in organization {self.config.CF_ORG}")
        return self._space

    async def find_existing_app(self, request: DeploymentRequest, space: Space) -> Optional[str]:
        logger.info(f"Looking up application data for {request.app_name} in space {space.name}.")
        try:
            return await asyncio.to_thread(self.cf.get_app_by_name, request.app_name, space.guid)
        except AppBaseError as e:
            raise ProvisionError(f"Could not look up application {request.app_name}: {e.message}", fatal=True)

    async def fetch_package(self, request: DeploymentRequest) -> bytes:
        archive = await asyncio.to_thread(self.github.fetch_archive, request.owner, request.repo, request.branch)
        self.notify(messages.OBTAINING_ZIP.format(app=request.app_name))
        logger.info(f"Repository data obtained for {request.app_name}.")
        package = await asyncio.to_thread(archive_service.restructure_archive, archive)
        logger.info(f"Application zip created for {request.app_name}.")
        return package

    def _stage_package(self, package: bytes, repo: str) -> Tuple[pathlib.Path, pathlib.Path]:
        try:
            workspace = archive_service.create_workspace(self.config.DEPLOY_WORKSPACE_DIR)
        except OSError as e:
            raise PackagingError(f"Could not create a deployment workspace: {str(e)}")
        try:
            return workspace, archive_service.write_package(package, workspace, repo)
        except OSError as e:
            archive_service.remove_workspace(workspace)
            raise PackagingError(f"Could not write the application package: {str(e)}")

    async def run(self, request: DeploymentRequest) -> DeploymentHandle:
        logger.info(f"Beginning deployment steps for {request.app_name} ...")
        workspace: Optional[pathlib.Path] = None
        app_guid: Optional[str] = None
        space: Optional[Space] = None
        try:
            space = await self.resolve_space()
            existing_guid = await self.find_existing_app(request, space)

            package = await self.fetch_package(request)
            descriptor = await asyncio.to_thread(manifest_service.parse_descriptor, package)
            workspace, package_path = await asyncio.to_thread(self._stage_package, package, request.repo)

            record = await provisioning_service.provision_application(
                self.cf, request, descriptor, space.guid, existing_guid, self.notify
            )
            app_guid = record.guid

            self.notify(messages.UPLOADING_APP.format(app=request.app_name, org=self.config.CF_ORG, space=space.name))
            await upload_service.upload_package(self.cf, app_guid, package_path)

            await launch_service.start_application(self.cf, app_guid)
            self.notify(messages.STARTING_APP.format(app=request.app_name))
        except ConfigurationError:
            raise
        except AppBaseError as e:
            return self._fail(request, app_guid, e)
        finally:
            if workspace is not None:
                await asyncio.to_thread(archive_service.remove_workspace, workspace)

        def report(outcome: DeploymentOutcome) -> None:
            if outcome.state == "started":
                self.notify(messages.APP_COMPLETE.format(
                    app=request.app_name, org=self.config.CF_ORG, space=space.name, url=outcome.url
                ))
            else:
                self.notify(messages.APP_UNKNOWN.format(app=request.app_name))

        status_check = launch_service.schedule_status_check(
            self.cf, app_guid, self.config.STATUS_CHECK_DELAY_SECONDS, report
        )
        return DeploymentHandle(request, app_guid=app_guid, status_check=status_check)

    def _fail(self, request: DeploymentRequest, app_guid: Optional[str], error: AppBaseError) -> DeploymentHandle:
        logger.error(f"An error occurred during application deployment of {request.app_name}: {error.message}")
        self.notify(messages.DEPLOY_ERROR.format(app=request.app_name, error=error.message))
        outcome = DeploymentOutcome(state="failed", error=error.message)
        return DeploymentHandle(request, app_guid=app_guid, failure=outcome)


async def handle_deploy_command(
    tokens: Sequence[str],
    resolver: InputResolver,
    pipeline: DeploymentPipeline
) -> DeploymentHandle:
    """Resolves the arguments of a deploy command and runs the pipeline. ResolutionError and ConfigurationError propagate."""
    request = await resolver.resolve(tokens)
    return await pipeline.run(request)


async def handle_deploy_intent(
    app_name: Optional[str],
    url: Optional[str],
    resolver: InputResolver,
    pipeline: DeploymentPipeline
) -> DeploymentHandle:
    request = await resolver.resolve_intent(app_name, url)
    return await pipeline.run(request)
