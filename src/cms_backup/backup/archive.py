"""Archive container access shared by restore and inspection.

An archive is a zip file with one dump per table (``<root>/db/<table>.bson``
or a legacy ``.json`` array), an optional ``<root>/manifest.json`` and,
in older generations, standalone template assets.

Usage:
    from cms_backup.backup.archive import open_archive, scan_table_entries

    with open_archive("backup-2026-01-01T00-00-00.zip") as archive:
        entries = scan_table_entries(archive)
        entries["posts"].info.filename   # "mx-space-go/db/posts.bson"
"""

import io
import json
import logging
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from pydantic import ValidationError

from cms_backup.backup.errors import ArchiveFormatError, DecodeError
from cms_backup.backup.legacy import find_legacy_templates
from cms_backup.backup.models import ArchiveInspection, BackupManifest
from cms_backup.backup.registry import (
    FORMAT_BSON,
    MANIFEST_PATH,
    parse_backup_entry,
    resolve_table_name,
)

logger = logging.getLogger(__name__)

ArchiveSource = bytes | bytearray | str | Path | BinaryIO


@dataclass(frozen=True)
class TableEntry:
    """The archive entry chosen for one canonical table."""

    table: str
    info: zipfile.ZipInfo
    format: str


def open_archive(source: ArchiveSource) -> zipfile.ZipFile:
    """Open an archive for reading.

    Args:
        source: Raw bytes, a filesystem path, or a binary file object.

    Raises:
        ArchiveFormatError: If the container is missing or not a zip file.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(bytes(source))
    try:
        return zipfile.ZipFile(source, mode="r")
    except (zipfile.BadZipFile, zlib.error, ValueError, OSError) as e:
        raise ArchiveFormatError(f"invalid zip file: {e}") from e


def scan_table_entries(archive: zipfile.ZipFile) -> dict[str, TableEntry]:
    """Resolve archive entries to canonical tables.

    When several entries resolve to the same table, a ``bson`` entry wins
    over a ``json`` one; otherwise the first entry in the archive wins.
    Unrecognised entries are ignored.
    """
    entries: dict[str, TableEntry] = {}
    for info in archive.infolist():
        if info.is_dir():
            continue
        parsed = parse_backup_entry(info.filename)
        if parsed is None:
            continue
        name, fmt = parsed
        table = resolve_table_name(name)
        if table is None:
            logger.debug("Ignoring archive entry %s: unknown table %r", info.filename, name)
            continue

        existing = entries.get(table)
        if existing is None or (existing.format != FORMAT_BSON and fmt == FORMAT_BSON):
            entries[table] = TableEntry(table=table, info=info, format=fmt)
    return entries


def read_entry(archive: zipfile.ZipFile, entry: TableEntry) -> bytes:
    """Read the raw payload of a table entry.

    Raises:
        DecodeError: If the compressed data is corrupt, encrypted, or uses an
            unsupported compression method.
    """
    try:
        return archive.read(entry.info)
    except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError, RuntimeError) as e:
        raise DecodeError(
            f"read archive entry {entry.info.filename} failed: {e}", table=entry.table
        ) from e


def read_manifest(archive: zipfile.ZipFile) -> BackupManifest | None:
    """Read the manifest if present and well-formed; ``None`` otherwise."""
    try:
        raw = archive.read(MANIFEST_PATH)
    except KeyError:
        return None
    except (zipfile.BadZipFile, zlib.error, OSError) as e:
        logger.warning("Unreadable manifest in archive: %s", e)
        return None

    try:
        return BackupManifest.model_validate(json.loads(raw))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.warning("Malformed manifest in archive: %s", e)
        return None


def inspect_archive(source: ArchiveSource) -> ArchiveInspection:
    """Describe what a restore of *source* would import.

    Raises:
        ArchiveFormatError: If *source* is not a readable zip file.
    """
    with open_archive(source) as archive:
        entries = scan_table_entries(archive)
        chosen = {entry.info.filename for entry in entries.values()}
        templates = find_legacy_templates(archive)
        template_files = {info.filename for info, _ in templates}

        ignored = [
            info.filename
            for info in archive.infolist()
            if not info.is_dir()
            and info.filename not in chosen
            and info.filename not in template_files
            and info.filename != MANIFEST_PATH
        ]

        return ArchiveInspection(
            manifest=read_manifest(archive),
            tables={
                table: entries[table].info.filename
                for table in sorted(entries)
            },
            ignored_entries=ignored,
            legacy_templates=[option for _, option in templates],
        )
