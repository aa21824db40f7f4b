"""cms-backup: portable backup archives for the CMS relational database.

Exports every content table into a zip of BSON dumps and restores such
archives transactionally, including archives produced by earlier
application generations (renamed tables and columns, JSON dumps, legacy
per-section options, template assets).

Usage:
    from cms_backup import AsyncSqlAdapter, export_archive, restore_archive
    from cms_backup import get_adapter, load_backup_config
    from cms_backup import RestoreSummary, BackupError
"""

__version__ = "0.1.0"

# Adapters
from cms_backup.adapters import AsyncSqlAdapter, DatabaseClient, DatabaseTransaction

# Backup
from cms_backup.backup import (
    ArchiveFormatError,
    BackupError,
    BackupManifest,
    RestoreSummary,
    create_local_backup,
    export_archive,
    inspect_archive,
    list_backups,
    restore_archive,
    write_archive,
)

# Config
from cms_backup.config import BackupConfig, DatabaseProfile, load_backup_config

# Factory
from cms_backup.factory import ProfileNotFoundError, get_adapter, resolve_url

__all__ = [
    # Adapters
    "DatabaseClient",
    "DatabaseTransaction",
    "AsyncSqlAdapter",
    # Backup
    "export_archive",
    "write_archive",
    "restore_archive",
    "inspect_archive",
    "create_local_backup",
    "list_backups",
    "BackupManifest",
    "RestoreSummary",
    "BackupError",
    "ArchiveFormatError",
    # Config
    "load_backup_config",
    "BackupConfig",
    "DatabaseProfile",
    # Factory
    "get_adapter",
    "resolve_url",
    "ProfileNotFoundError",
]
