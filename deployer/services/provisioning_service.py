import asyncio
from typing import Any, Callable, Dict, List, Optional

from deployer.core import messages
from deployer.core.exceptions import PlatformError, ProvisionError
from deployer.core.logging_config import get_logger
from deployer.core.schemas import ApplicationRecord, DeploymentRequest, Descriptor, Route
from deployer.services.cf_client import CloudFoundryClient

logger = get_logger(__name__)


def _guid(resource: Dict[str, Any]) -> str:
    guid = (resource or {}).get("metadata", {}).get("guid")
    if not guid:
        raise PlatformError("Platform response is missing a resource guid.")
    return guid


def select_domain(domains: List[Dict[str, Any]], domain_name: Optional[str]) -> Dict[str, Any]:
    """The shared domain named in the manifest if available, otherwise the first shared domain."""
    if domain_name:
        for domain in domains:
            if domain.get("entity", {}).get("name") == domain_name:
                return domain
        logger.warning(f"Domain '{domain_name}' is not an available shared domain, using the first shared domain.")
    return domains[0]


async def bind_route(
    cf: CloudFoundryClient,
    app_guid: str,
    host: str,
    domain_name: Optional[str],
    space_guid: str
) -> Route:
    """
    Associates host.domain with the app, reusing a matching route when one
    exists so at most one route is created per (host, domain).
    """
    domains = await asyncio.to_thread(cf.list_shared_domains)
    if not domains:
        raise ProvisionError("No shared domains are available for the application route.", fatal=False)
    domain_guid = _guid(select_domain(domains, domain_name))
    logger.info(f"Using domain {domain_guid} for host {host}")

    routes = await asyncio.to_thread(cf.list_routes, host, domain_guid)
    route_guid = None
    for route in routes:
        if route.get("entity", {}).get("host") == host:
            route_guid = _guid(route)
            logger.info(f"Reusing existing route {route_guid} for host {host}")
            break

    if route_guid is None:
        created = await asyncio.to_thread(cf.create_route, host, domain_guid, space_guid)
        route_guid = _guid(created)
        logger.info(f"Created route {route_guid} for host {host}")

    await asyncio.to_thread(cf.associate_route, app_guid, route_guid)
    logger.info(f"Bound route {route_guid} to application {app_guid}")
    return Route(guid=route_guid, host=host, domain_guid=domain_guid)


async def provision_application(
    cf: CloudFoundryClient,
    request: DeploymentRequest,
    descriptor: Descriptor,
    space_guid: str,
    existing_guid: Optional[str],
    notify: Callable[[str], None]
) -> ApplicationRecord:
    """
    Creates the application when it does not exist yet and binds its route.

    An existing application is reused as is: neither the app nor its routes
    are touched, whatever host or domain the manifest declares. Creation
    failures raise a fatal ProvisionError; route failures are reported
    through notify and the deployment carries on.
    """
    if existing_guid:
        logger.info(f"Application {request.app_name} already exists with guid {existing_guid}, skipping creation.")
        return ApplicationRecord(guid=existing_guid, name=request.app_name, space_guid=space_guid, existing=True)

    app_options = {"name": request.app_name, "space_guid": space_guid}
    app_options.update(descriptor.app_options())

    logger.info(f"Application {request.app_name} does not yet exist, creating it with options {app_options}")
    notify(messages.CREATE_APP.format(app=request.app_name))
    try:
        app_info = await asyncio.to_thread(cf.create_app, app_options)
        app_guid = _guid(app_info)
    except PlatformError as e:
        logger.error(f"Application {request.app_name} could not be created: {e.description}")
        raise ProvisionError(f"Application creation error occurred: {e.description}", fatal=True)
    logger.info(f"Application {request.app_name} was created with guid {app_guid}.")

    host = descriptor.host or request.app_name
    try:
        await bind_route(cf, app_guid, host, descriptor.domain, space_guid)
    except (PlatformError, ProvisionError) as e:
        error = e.description if isinstance(e, PlatformError) else e.message
        logger.error(f"Route setup for application {request.app_name} failed: {error}")
        notify(messages.ROUTE_ERROR.format(error=error))

    return ApplicationRecord(guid=app_guid, name=request.app_name, space_guid=space_guid, existing=False)
