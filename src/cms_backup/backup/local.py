"""Backup archives kept in a local directory.

The directory comes from, in order: an explicit argument, the
``MX_BACKUP_DIR`` / ``BACKUP_DIR`` environment setting, or ``./backups``.
Only ``.zip`` files directly inside it are treated as backups; every
filename argument is reduced to its basename first, so callers cannot
reach outside the directory.
"""

import logging
from datetime import datetime
from pathlib import Path

from cms_backup.adapters.base import DatabaseClient
from cms_backup.backup.export import export_archive
from cms_backup.backup.models import BackupArtifact, BackupItem, RestoreSummary
from cms_backup.backup.restore import restore_archive
from cms_backup.config.loader import get_settings

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = "backups"
BACKUP_SUFFIX = ".zip"


def resolve_backup_dir(backup_dir: str | Path | None = None) -> Path:
    """Resolve the local backup directory (not created here)."""
    if backup_dir is not None and str(backup_dir).strip():
        return Path(str(backup_dir).strip()).expanduser()

    configured = (get_settings().backup_dir or "").strip()
    if configured:
        return Path(configured).expanduser()
    return Path.cwd() / DEFAULT_BACKUP_DIR


def backup_filename(now: datetime) -> str:
    """Filename for a backup taken at *now*: ``backup-YYYY-MM-DDTHH-MM-SS.zip``."""
    return f"backup-{now:%Y-%m-%dT%H-%M-%S}{BACKUP_SUFFIX}"


def format_size(size: int) -> str:
    """Human-readable size with two decimals above one kilobyte.

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(2048)
        '2.00 KB'
        >>> format_size(3 * 1024 * 1024)
        '3.00 MB'
    """
    if size >= 1 << 20:
        return f"{size / (1 << 20):.2f} MB"
    if size >= 1 << 10:
        return f"{size / (1 << 10):.2f} KB"
    return f"{size} B"


def _backup_name(name: str) -> str | None:
    base = Path(name.strip()).name.strip()
    if not base or not base.endswith(BACKUP_SUFFIX):
        return None
    return base


def _backup_path(filename: str, backup_dir: str | Path | None) -> Path:
    name = _backup_name(filename)
    if name is None:
        raise ValueError(f"invalid backup filename: {filename!r}")
    return resolve_backup_dir(backup_dir) / name


# ============================================================================
# Operations
# ============================================================================


async def create_local_backup(
    adapter: DatabaseClient,
    backup_dir: str | Path | None = None,
    now: datetime | None = None,
) -> BackupArtifact:
    """Export the database into a new archive in the backup directory."""
    now = now or datetime.now()
    payload = await export_archive(adapter)

    directory = resolve_backup_dir(backup_dir)
    directory.mkdir(parents=True, exist_ok=True)

    filename = backup_filename(now)
    path = directory / filename
    path.write_bytes(payload)

    logger.info("Wrote backup %s (%s)", path, format_size(len(payload)))
    return BackupArtifact(filename=filename, path=path, size=len(payload))


def list_backups(backup_dir: str | Path | None = None) -> list[BackupItem]:
    """List backup archives in the backup directory, sorted by filename."""
    directory = resolve_backup_dir(backup_dir)
    directory.mkdir(parents=True, exist_ok=True)

    items: list[BackupItem] = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if not entry.is_file() or not entry.name.endswith(BACKUP_SUFFIX):
            continue
        try:
            size = entry.stat().st_size
        except OSError:
            continue
        items.append(BackupItem(filename=entry.name, size=format_size(size)))
    return items


def read_backup(filename: str, backup_dir: str | Path | None = None) -> bytes:
    """Read a backup archive by filename.

    Raises:
        ValueError: If *filename* is not a ``.zip`` name.
        FileNotFoundError: If the archive does not exist.
    """
    return _backup_path(filename, backup_dir).read_bytes()


def delete_backups(filenames: list[str], backup_dir: str | Path | None = None) -> list[str]:
    """Delete backup archives by filename.

    Names that are not ``.zip`` files and archives that do not exist are
    skipped.

    Returns:
        Filenames actually deleted.
    """
    directory = resolve_backup_dir(backup_dir)
    deleted: list[str] = []
    for raw in filenames:
        name = _backup_name(raw)
        if name is None:
            logger.warning("Refusing to delete %r: not a backup archive name", raw)
            continue
        path = directory / name
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Backup %s does not exist", path)
            continue
        deleted.append(name)
        logger.info("Deleted backup %s", path)
    return deleted


async def restore_local_backup(
    adapter: DatabaseClient,
    filename: str,
    backup_dir: str | Path | None = None,
) -> RestoreSummary:
    """Roll the database back to a backup in the backup directory."""
    path = _backup_path(filename, backup_dir)
    if not path.is_file():
        raise FileNotFoundError(f"Backup not found: {path}")
    return await restore_archive(adapter, path)
