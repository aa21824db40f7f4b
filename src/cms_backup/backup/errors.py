"""Exception hierarchy for archive export and restore.

Every error raised by the restore path derives from ``BackupError`` so
callers can catch one type.  Only ``ConstraintViolation`` is recoverable:
the orchestrator skips the offending row and keeps importing the table.

Usage:
    from cms_backup.backup.errors import BackupError, ArchiveFormatError

    try:
        summary = await restore_archive(adapter, "backup.zip")
    except ArchiveFormatError:
        ...  # not a zip, nothing was touched
    except BackupError:
        ...  # restore rolled back
"""


class BackupError(Exception):
    """Base class for backup and restore failures."""


class ArchiveFormatError(BackupError):
    """Archive container is unreadable or not a zip file.

    Raised before any transaction is opened.
    """


class DecodeError(BackupError):
    """A per-table payload could not be decoded."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class SchemaIntrospectionError(BackupError):
    """Column definitions of a target table could not be read."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class ConstraintViolation(BackupError):
    """Unique or duplicate-key conflict on a single row insert."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class RowInsertError(BackupError):
    """Non-duplicate failure while inserting a restored row."""

    def __init__(self, message: str, table: str, index: int) -> None:
        super().__init__(message)
        self.table = table
        self.index = index


class TransactionError(BackupError):
    """Begin, commit or rollback of the restore transaction failed."""
