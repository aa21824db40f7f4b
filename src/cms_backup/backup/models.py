"""Pydantic models for archives, restore results and local artifacts.

Usage:
    from cms_backup.backup.models import BackupManifest, RestoreSummary

    manifest = BackupManifest(engine="mysql", tables=["posts", "notes"])
    manifest.model_dump_json()
"""

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from cms_backup.backup.registry import ARCHIVE_FORMAT, ARCHIVE_FORMAT_VERSION


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackupManifest(BaseModel):
    """Self-describing provenance written next to the table dumps.

    Informational only: restore neither requires it nor trusts it.
    """

    format: str = ARCHIVE_FORMAT
    version: int = ARCHIVE_FORMAT_VERSION
    engine: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    tables: list[str] = Field(default_factory=list)


class TableRestoreStats(BaseModel):
    """Row counts for one restored table."""

    source: str                 # archive entry the rows came from
    decoded: int = 0            # rows decoded from the entry
    dropped: int = 0            # rows that normalized to nothing
    inserted: int = 0
    duplicates: int = 0         # rows skipped on unique-key conflicts


class RestoreSummary(BaseModel):
    """Result of a committed restore."""

    tables: dict[str, TableRestoreStats] = Field(default_factory=dict)
    migrated_options: list[str] = Field(default_factory=list)
    imported_templates: list[str] = Field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return sum(stats.inserted for stats in self.tables.values())

    @property
    def duplicate_count(self) -> int:
        return sum(stats.duplicates for stats in self.tables.values())


class ArchiveInspection(BaseModel):
    """What a restore would read from an archive, without touching a database."""

    manifest: BackupManifest | None = None
    tables: dict[str, str] = Field(default_factory=dict)   # canonical table -> entry path
    ignored_entries: list[str] = Field(default_factory=list)
    legacy_templates: list[str] = Field(default_factory=list)


class BackupItem(BaseModel):
    """A backup archive in the local backup directory."""

    filename: str
    size: str


class BackupArtifact(BaseModel):
    """A freshly written local backup archive."""

    filename: str
    path: Path
    size: int
