import io
import re
import zipfile
from typing import Any, Dict, Optional, Union

import yaml

from deployer.core.logging_config import get_logger
from deployer.core.schemas import Descriptor

logger = get_logger(__name__)

MANIFEST_NAME = "manifest.yml"


def value_in_mb(value: Union[str, int, float, None]) -> Optional[int]:
    """
    Converts a manifest size such as '512M', '2G' or '1GB' into megabytes.

    Plain numbers are taken as megabytes. An unrecognized unit is logged and
    treated as megabytes, so '256X' yields 256. Returns None when the value
    carries no digits.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)

    text = str(value).strip()
    numbers = re.search(r'\d+', text)
    if numbers is None:
        logger.warning(f"No numeric value in size '{value}', ignoring it.")
        return None
    amount = int(numbers.group(0))

    unit = text[numbers.end():].strip().upper()
    if len(unit) > 1 and unit.endswith('B'):
        unit = unit[:-1]

    if unit == 'G':
        return amount * 1024
    if unit in ('', 'M'):
        return amount
    logger.warning(f"Invalid unit in value '{value}', assuming M.")
    return amount


def _as_int(value: Any, field: str) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Manifest field '{field}' is not an integer: {value!r}. Ignoring it.")
        return None


def _as_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def descriptor_from_manifest(manifest: Any) -> Descriptor:
    """Builds a Descriptor from a loaded manifest document, honoring applications[0] only."""
    if not isinstance(manifest, dict):
        return Descriptor()
    applications = manifest.get("applications")
    if not isinstance(applications, list) or not applications or not isinstance(applications[0], dict):
        return Descriptor()
    if len(applications) > 1:
        logger.info(f"Manifest declares {len(applications)} applications, only the first is used.")

    app: Dict[str, Any] = applications[0]
    env = app.get("env")
    if env is not None and not isinstance(env, dict):
        logger.warning(f"Manifest field 'env' is not a mapping: {env!r}. Ignoring it.")
        env = None

    return Descriptor(
        memory=value_in_mb(app.get("memory")),
        disk_quota=value_in_mb(app.get("disk_quota")),
        instances=_as_int(app.get("instances"), "instances"),
        env=env or None,
        domain=_as_str(app.get("domain")),
        host=_as_str(app.get("host")),
        buildpack=_as_str(app.get("buildpack")),
        command=_as_str(app.get("command")),
    )


def parse_descriptor(package: bytes) -> Descriptor:
    """
    Reads manifest.yml from the root of an application package.
    A missing or unparsable manifest yields an empty Descriptor.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(package)) as archive:
            try:
                raw = archive.read(MANIFEST_NAME)
            except KeyError:
                logger.info("No manifest.yml found in the application package, using platform defaults.")
                return Descriptor()
    except zipfile.BadZipFile as e:
        logger.warning(f"Application package could not be opened to read the manifest: {str(e)}")
        return Descriptor()

    try:
        manifest = yaml.safe_load(raw.decode('utf-8'))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        logger.warning(f"manifest.yml could not be parsed, using platform defaults: {str(e)}")
        return Descriptor()

    logger.info("Using manifest.yml found in the application package.")
    return descriptor_from_manifest(manifest)
