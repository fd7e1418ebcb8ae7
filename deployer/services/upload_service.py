import asyncio
import pathlib
from typing import Optional

from deployer.core.exceptions import PlatformError, UploadError
from deployer.core.logging_config import get_logger
from deployer.services.cf_client import CloudFoundryClient

logger = get_logger(__name__)


async def upload_package(cf: CloudFoundryClient, app_guid: str, package_path: Optional[pathlib.Path]) -> None:
    """Pushes the application package; returns once the platform has accepted the bits."""
    if package_path is None or not pathlib.Path(package_path).is_file():
        logger.error(f"No application package available to upload for {app_guid}.")
        raise UploadError("An error occurred deploying application zip file: no package was created.")

    logger.info(f"Uploading {package_path} to application {app_guid}")
    try:
        await asyncio.to_thread(cf.upload_bits, app_guid, pathlib.Path(package_path))
    except PlatformError as e:
        raise UploadError(f"Upload of the application package failed: {e.description}")
    logger.info(f"Application package uploaded for {app_guid}")
