"""Nextcloud file storage: local mount when configured, WebDAV otherwise.

Paths are Nextcloud paths such as ``/Invoices/work/請求書_20250531.xlsx``.
"""

import logging
import shutil
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path, PurePosixPath
from urllib.parse import quote

import httpx

from .config import Config
from .errors import ConfigurationError, NotFoundError, TransientIOError

logger = logging.getLogger("seikyu.storage")

_PROPFIND_BODY = '''<?xml version="1.0"?>
<d:propfind xmlns:d="DAV:">
  <d:prop>
    <d:getcontentlength/>
    <d:getlastmodified/>
    <d:resourcetype/>
  </d:prop>
</d:propfind>'''


def join_path(folder: str, name: str) -> str:
    return str(PurePosixPath("/") / folder.lstrip("/") / name)


# --- Private helpers ---


def _mount_path(config: Config, path: str) -> Path:
    """Get the local mount path for a Nextcloud path."""
    return config.nextcloud_mount_path / path.lstrip("/")


def _nc_auth(config: Config) -> tuple[str, str]:
    return (config.nextcloud.username, config.nextcloud.app_password)


def _dav_url(config: Config, path: str) -> str:
    if not config.webdav_url:
        raise ConfigurationError(
            "Nextcloud is not configured: set nextcloud_mount_path or [nextcloud] url"
        )
    return f"{config.webdav_url}/{quote(path.lstrip('/'))}"


def _dav_request(
    config: Config,
    method: str,
    path: str,
    what: str = "File",
    **kwargs,
) -> httpx.Response:
    """WebDAV request mapping 404/409 to NotFoundError and transport errors to TransientIOError."""
    url = _dav_url(config, path)
    try:
        response = httpx.request(method, url, auth=_nc_auth(config), timeout=30.0, **kwargs)
    except httpx.HTTPError as e:
        raise TransientIOError(f"WebDAV {method} {path} failed: {e}") from e

    if response.status_code in (404, 409):
        raise NotFoundError(what, path)
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TransientIOError(
            f"WebDAV {method} {path} failed: HTTP {response.status_code}"
        ) from e
    return response


# --- Public operations ---


def exists(config: Config, path: str) -> bool:
    if config.use_mount:
        return _mount_path(config, path).exists()
    try:
        _dav_request(
            config, "PROPFIND", path,
            content=_PROPFIND_BODY, headers={"Depth": "0"},
        )
        return True
    except NotFoundError:
        return False


def read_file(config: Config, path: str) -> bytes:
    """Read a file's bytes."""
    if config.use_mount:
        local = _mount_path(config, path)
        if not local.is_file():
            raise NotFoundError("File", path)
        return local.read_bytes()
    return _dav_request(config, "GET", path).content


def write_file(config: Config, folder: str, name: str, data: bytes) -> str:
    """Create (or replace) ``name`` in ``folder``. Returns the new path."""
    path = join_path(folder, name)
    if config.use_mount:
        local_folder = _mount_path(config, folder)
        if not local_folder.is_dir():
            raise NotFoundError("Folder", folder)
        (local_folder / name).write_bytes(data)
    else:
        _dav_request(config, "PUT", path, what="Folder", content=data)
    logger.debug("Wrote %d bytes to %s", len(data), path)
    return path


def replace_file(config: Config, path: str, data: bytes) -> None:
    """Overwrite an existing file in place."""
    parent = str(PurePosixPath(path).parent)
    write_file(config, parent, PurePosixPath(path).name, data)


def copy_file(config: Config, source: str, folder: str, name: str) -> str:
    """Copy ``source`` into ``folder`` as ``name``. Returns the new path."""
    target = join_path(folder, name)
    if config.use_mount:
        local_source = _mount_path(config, source)
        if not local_source.is_file():
            raise NotFoundError("File", source)
        local_folder = _mount_path(config, folder)
        if not local_folder.is_dir():
            raise NotFoundError("Folder", folder)
        shutil.copy2(local_source, local_folder / name)
    else:
        if not exists(config, source):
            raise NotFoundError("File", source)
        _dav_request(
            config, "COPY", source, what="Folder",
            headers={"Destination": _dav_url(config, target), "Overwrite": "T"},
        )
    logger.debug("Copied %s -> %s", source, target)
    return target


def available_path(config: Config, folder: str, name: str) -> str:
    """A path in ``folder`` that does not exist yet, based on ``name``."""
    candidate = join_path(folder, name)
    stem, suffix = PurePosixPath(name).stem, PurePosixPath(name).suffix
    counter = 2
    while exists(config, candidate):
        candidate = join_path(folder, f"{stem}_{counter}{suffix}")
        counter += 1
    return candidate


def move_file(config: Config, path: str, folder: str) -> str:
    """Move ``path`` into ``folder`` without overwriting. Returns the new path."""
    name = PurePosixPath(path).name
    if config.use_mount:
        local_source = _mount_path(config, path)
        if not local_source.is_file():
            raise NotFoundError("File", path)
        if not _mount_path(config, folder).is_dir():
            raise NotFoundError("Folder", folder)
        target = available_path(config, folder, name)
        shutil.move(str(local_source), str(_mount_path(config, target)))
    else:
        target = available_path(config, folder, name)
        _dav_request(
            config, "MOVE", path, what="Folder",
            headers={"Destination": _dav_url(config, target), "Overwrite": "F"},
        )
    logger.info("Moved %s -> %s", path, target)
    return target


def stat(config: Config, path: str) -> dict:
    """Name, size, modification time and URL of a stored file."""
    if config.use_mount:
        local = _mount_path(config, path)
        if not local.exists():
            raise NotFoundError("File", path)
        st = local.stat()
        return {
            "name": local.name,
            "size": st.st_size,
            "modified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
            "is_folder": local.is_dir(),
            "url": file_url(config, path),
        }

    response = _dav_request(
        config, "PROPFIND", path,
        content=_PROPFIND_BODY, headers={"Depth": "0", "Content-Type": "application/xml"},
    )
    size = None
    modified = None
    is_folder = False
    root = ET.fromstring(response.text)
    for elem in root.iter():
        if elem.tag.endswith("}getcontentlength") and elem.text:
            size = int(elem.text)
        elif elem.tag.endswith("}getlastmodified") and elem.text:
            modified = parsedate_to_datetime(elem.text).isoformat()
        elif elem.tag.endswith("}collection"):
            is_folder = True
    return {
        "name": PurePosixPath(path).name,
        "size": size,
        "modified": modified,
        "is_folder": is_folder,
        "url": file_url(config, path),
    }


def file_url(config: Config, path: str) -> str:
    """URL of a stored file: WebDAV URL when Nextcloud is configured, else a file:// URL."""
    if config.webdav_url:
        return f"{config.webdav_url}/{quote(path.lstrip('/'))}"
    if config.use_mount:
        return _mount_path(config, path).resolve().as_uri()
    return path
