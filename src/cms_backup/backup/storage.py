"""Copy local backups to object storage.

No concrete storage client ships with this package; callers pass anything
that implements ``ObjectStorage``.

Usage:
    from cms_backup.backup.storage import render_object_key, upload_backup

    render_object_key("backups/{Y}/{m}/{filename}", "backup.zip", now)
    # "backups/2026/01/backup.zip"

    url = await upload_backup(adapter, bucket, enabled=True, path_template=tpl)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

from cms_backup.adapters.base import DatabaseClient
from cms_backup.backup.local import create_local_backup
from cms_backup.config.defaults import DEFAULT_OBJECT_KEY_TEMPLATE

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/zip"


class ObjectStorage(Protocol):
    """Destination for uploaded backup archives."""

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store *data* under *key*.

        Returns:
            URL or locator of the stored object.
        """
        ...


def render_object_key(template: str | None, filename: str, now: datetime) -> str:
    """Render an object key from a path template.

    Placeholders: ``{Y}`` ``{m}`` ``{d}`` ``{H}`` ``{M}`` ``{s}`` (zero-padded
    date and time parts of *now*) and ``{filename}``.  Backslashes become
    slashes, a leading slash is dropped and repeated slashes collapse.

    Examples:
        >>> render_object_key("", "b.zip", datetime(2026, 3, 4, 5, 6, 7))
        'backups/2026/03/b.zip'
        >>> render_object_key("/a\\\\{d}//{filename}", "b.zip", datetime(2026, 3, 4))
        'a/04/b.zip'
    """
    tpl = (template or "").strip() or DEFAULT_OBJECT_KEY_TEMPLATE

    replacements = {
        "{Y}": f"{now:%Y}",
        "{m}": f"{now:%m}",
        "{d}": f"{now:%d}",
        "{H}": f"{now:%H}",
        "{M}": f"{now:%M}",
        "{s}": f"{now:%S}",
        "{filename}": filename,
    }
    key = tpl
    for placeholder, value in replacements.items():
        key = key.replace(placeholder, value)

    key = key.replace("\\", "/")
    key = key.removeprefix("/").strip()
    while "//" in key:
        key = key.replace("//", "/")
    return key or filename


async def upload_backup(
    adapter: DatabaseClient,
    storage: ObjectStorage,
    *,
    enabled: bool,
    path_template: str | None = None,
    backup_dir: str | Path | None = None,
    now: datetime | None = None,
) -> str | None:
    """Create a local backup and upload it.

    Does nothing and returns ``None`` when *enabled* is false.

    Returns:
        The locator returned by *storage*.
    """
    if not enabled:
        logger.info("Backup upload disabled; nothing to do")
        return None

    now = now or datetime.now()
    artifact = await create_local_backup(adapter, backup_dir=backup_dir, now=now)
    key = render_object_key(path_template, artifact.filename, now)

    url = await storage.upload(key, artifact.path.read_bytes(), ARCHIVE_CONTENT_TYPE)
    logger.info("Uploaded backup %s to %s", artifact.filename, key)
    return url
