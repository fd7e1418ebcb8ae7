import io
import pathlib
import shutil
import tempfile
import time
import zipfile
import zlib

from deployer.core.exceptions import PackagingError
from deployer.core.logging_config import get_logger

logger = get_logger(__name__)


def _read_entry(source: zipfile.ZipFile, entry: zipfile.ZipInfo) -> bytes:
    try:
        return source.read(entry)
    except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError) as e:
        logger.error(f"Archive entry '{entry.filename}' could not be read: {str(e)}")
        raise PackagingError(f"Archive entry '{entry.filename}' could not be read: {str(e)}")


def restructure_archive(data: bytes) -> bytes:
    """
    Removes the top-level directory the repository host wraps around every
    archive entry, e.g. `repo-main/src/app.js` becomes `src/app.js`.

    Directory entries are dropped; file content, timestamps and permission
    bits are preserved. Raises PackagingError for an archive with no entries,
    entries outside a single top-level directory, unreadable entries, or no
    files at all.
    """
    try:
        source = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        logger.error(f"Downloaded archive is not a valid zip file: {str(e)}")
        raise PackagingError(f"Downloaded archive is not a valid zip file: {str(e)}")

    with source:
        entries = source.infolist()
        if not entries:
            raise PackagingError("Downloaded archive contains no entries.")

        top_folder = entries[0].filename.split('/', 1)[0] + '/'
        logger.info(f"Stripping top-level folder '{top_folder}' from {len(entries)} archive entries")

        buffer = io.BytesIO()
        file_count = 0
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as target:
            for entry in entries:
                if not entry.filename.startswith(top_folder):
                    raise PackagingError(
                        f"Archive entry '{entry.filename}' is outside the top-level folder '{top_folder}'."
                    )
                name = entry.filename[len(top_folder):]
                if not name or entry.is_dir():
                    continue
                info = zipfile.ZipInfo(name, date_time=entry.date_time)
                info.external_attr = entry.external_attr
                info.compress_type = zipfile.ZIP_DEFLATED
                target.writestr(info, _read_entry(source, entry))
                file_count += 1

    if file_count == 0:
        raise PackagingError("Downloaded archive contains no files.")

    logger.info(f"Application package created with {file_count} files")
    return buffer.getvalue()


def create_workspace(base_dir: str) -> pathlib.Path:
    """Creates a fresh, uniquely named directory for one deployment."""
    pathlib.Path(base_dir).mkdir(parents=True, exist_ok=True)
    workspace_path = pathlib.Path(tempfile.mkdtemp(prefix="deploy_", dir=base_dir))
    logger.info(f"Created deployment workspace: {workspace_path}")
    return workspace_path


def write_package(package: bytes, workspace: pathlib.Path, repo: str) -> pathlib.Path:
    package_path = workspace / f"{repo}_{int(time.time() * 1000)}.zip"
    package_path.write_bytes(package)
    logger.info(f"Application package written to {package_path}")
    return package_path


def remove_workspace(workspace_path: pathlib.Path):
    """Removes the specified workspace directory."""
    if workspace_path and workspace_path.exists() and workspace_path.is_dir():
        try:
            shutil.rmtree(workspace_path)
            logger.info(f"Successfully removed workspace: {workspace_path}")
        except OSError as e:
            logger.error(f"Error removing workspace {workspace_path}: {str(e)}")
    else:
        logger.warning(f"Workspace path {workspace_path} not found or not a directory.")
