"""Archive export and restore for the CMS database.

Export writes every catalog table into a zip of BSON dumps; restore
replaces the contents of every table found in such an archive inside one
transaction, then applies legacy config and template upgrades.

Usage:
    from cms_backup.backup import export_archive, restore_archive, inspect_archive

    payload = await export_archive(adapter)
    summary = await restore_archive(adapter, payload)
"""

from cms_backup.backup.errors import (
    ArchiveFormatError,
    BackupError,
    ConstraintViolation,
    DecodeError,
    RowInsertError,
    SchemaIntrospectionError,
    TransactionError,
)
from cms_backup.backup.archive import inspect_archive, open_archive, scan_table_entries
from cms_backup.backup.export import export_archive, write_archive
from cms_backup.backup.local import (
    create_local_backup,
    delete_backups,
    format_size,
    list_backups,
    read_backup,
    resolve_backup_dir,
    restore_local_backup,
)
from cms_backup.backup.models import (
    ArchiveInspection,
    BackupArtifact,
    BackupItem,
    BackupManifest,
    RestoreSummary,
    TableRestoreStats,
)
from cms_backup.backup.registry import BACKUP_TABLE_NAMES, resolve_table_name
from cms_backup.backup.restore import restore_archive
from cms_backup.backup.storage import ObjectStorage, render_object_key, upload_backup

__all__ = [
    # Errors
    "BackupError",
    "ArchiveFormatError",
    "DecodeError",
    "SchemaIntrospectionError",
    "ConstraintViolation",
    "RowInsertError",
    "TransactionError",
    # Archive
    "open_archive",
    "scan_table_entries",
    "inspect_archive",
    "export_archive",
    "write_archive",
    "restore_archive",
    # Local backups
    "create_local_backup",
    "list_backups",
    "read_backup",
    "delete_backups",
    "restore_local_backup",
    "resolve_backup_dir",
    "format_size",
    # Object storage
    "ObjectStorage",
    "render_object_key",
    "upload_backup",
    # Models
    "BackupManifest",
    "RestoreSummary",
    "TableRestoreStats",
    "ArchiveInspection",
    "BackupItem",
    "BackupArtifact",
    # Registry
    "BACKUP_TABLE_NAMES",
    "resolve_table_name",
]
