"""Export every catalog table into a portable zip archive.

Tables are read in catalog order, one full ``SELECT`` each, and written as
concatenated BSON documents under ``mx-space-go/db/<table>.bson``.  A table
that cannot be read or encoded is logged and left out; the manifest lists
exactly the tables that made it into the archive.

Export is not a snapshot: concurrent writers may leave the tables mutually
inconsistent.

Usage:
    from cms_backup.backup.export import export_archive, write_archive

    payload = await export_archive(adapter)            # bytes
    manifest = await write_archive(adapter, "out.zip")
"""

import io
import logging
import zipfile
from pathlib import Path
from typing import BinaryIO

from cms_backup.adapters.base import DatabaseClient
from cms_backup.backup.codec import encode_rows
from cms_backup.backup.models import BackupManifest
from cms_backup.backup.registry import BACKUP_TABLE_NAMES, MANIFEST_PATH, table_entry_path

logger = logging.getLogger(__name__)


async def _dump_table(adapter: DatabaseClient, table: str) -> bytes | None:
    try:
        rows = await adapter.select(table)
    except Exception as e:
        logger.warning("Skipping table %s: query failed: %s", table, e)
        return None

    try:
        return encode_rows(rows)
    except Exception as e:
        logger.warning("Skipping table %s: encode failed: %s", table, e)
        return None


async def write_archive(
    adapter: DatabaseClient,
    destination: str | Path | BinaryIO,
) -> BackupManifest:
    """Export all catalog tables into a zip archive at *destination*.

    Args:
        adapter: Source database client.
        destination: File path or writable binary file object.

    Returns:
        The manifest written into the archive.
    """
    exported: list[str] = []
    with zipfile.ZipFile(destination, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        for table in BACKUP_TABLE_NAMES:
            payload = await _dump_table(adapter, table)
            if payload is None:
                continue
            archive.writestr(table_entry_path(table), payload)
            exported.append(table)
            logger.debug("Exported table %s (%d bytes)", table, len(payload))

        manifest = BackupManifest(engine=adapter.dialect_name, tables=exported)
        archive.writestr(MANIFEST_PATH, manifest.model_dump_json())

    logger.info(
        "Exported %d of %d tables", len(exported), len(BACKUP_TABLE_NAMES)
    )
    return manifest


async def export_archive(adapter: DatabaseClient) -> bytes:
    """Export all catalog tables and return the archive bytes."""
    buf = io.BytesIO()
    await write_archive(adapter, buf)
    return buf.getvalue()
