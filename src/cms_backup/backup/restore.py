"""Restore a backup archive into the live database.

The whole restore is one transaction.  For every catalog table present in
the archive, in catalog order, the table's rows are decoded, normalized
against the live schema, the table is emptied, and the rows are inserted
one at a time.  A row that hits a unique-key conflict is skipped; any
other failure aborts the restore and rolls everything back.

After the tables are loaded, legacy option rows are folded into the
unified config and legacy template files are imported, still inside the
same transaction.

Tables absent from the archive are left untouched.

Usage:
    from cms_backup.backup.restore import restore_archive

    summary = await restore_archive(adapter, "backup-2026-01-01T00-00-00.zip")
    print(summary.inserted_count, summary.duplicate_count)
"""

import logging
import zipfile

from cms_backup.adapters.base import DatabaseClient, DatabaseTransaction
from cms_backup.backup.archive import (
    ArchiveSource,
    TableEntry,
    open_archive,
    read_entry,
    scan_table_entries,
)
from cms_backup.backup.codec import decode_rows
from cms_backup.backup.columns import load_columns
from cms_backup.backup.errors import (
    ConstraintViolation,
    DecodeError,
    RowInsertError,
    TransactionError,
)
from cms_backup.backup.legacy import import_legacy_templates, migrate_legacy_options
from cms_backup.backup.models import RestoreSummary, TableRestoreStats
from cms_backup.backup.normalizer import normalize_row
from cms_backup.backup.registry import BACKUP_TABLE_NAMES

logger = logging.getLogger(__name__)


# ============================================================================
# Per-table import
# ============================================================================


async def _restore_table(
    tx: DatabaseTransaction,
    archive: zipfile.ZipFile,
    entry: TableEntry,
) -> TableRestoreStats:
    table = entry.table
    stats = TableRestoreStats(source=entry.info.filename)

    payload = read_entry(archive, entry)
    try:
        rows = decode_rows(payload, entry.format)
    except DecodeError as e:
        raise DecodeError(
            f"decode backup rows for table {table} failed: {e}", table=table
        ) from e
    stats.decoded = len(rows)

    columns = await load_columns(tx, table)

    normalized: list[dict] = []
    for row in rows:
        result = normalize_row(table, row, columns)
        if result is None:
            stats.dropped += 1
            continue
        normalized.append(result)

    await tx.delete(table)

    for idx, row in enumerate(normalized, start=1):
        try:
            await tx.insert(table, row)
        except ConstraintViolation as e:
            stats.duplicates += 1
            logger.debug("Skipping duplicate row #%d in %s: %s", idx, table, e)
            continue
        except Exception as e:
            raise RowInsertError(
                f"insert row #{idx} into {table} failed: {e}", table=table, index=idx
            ) from e
        stats.inserted += 1

    if stats.duplicates:
        logger.warning(
            "Table %s: skipped %d duplicate row(s)", table, stats.duplicates
        )
    logger.info(
        "Restored table %s: %d of %d row(s) from %s",
        table, stats.inserted, stats.decoded, stats.source,
    )
    return stats


async def _import_all(
    tx: DatabaseTransaction,
    archive: zipfile.ZipFile,
    entries: dict[str, TableEntry],
) -> RestoreSummary:
    summary = RestoreSummary()

    fk_disabled = False
    if tx.supports_deferred_foreign_keys:
        await tx.set_foreign_key_checks(False)
        fk_disabled = True

    try:
        for table in BACKUP_TABLE_NAMES:
            entry = entries.get(table)
            if entry is None:
                continue
            summary.tables[table] = await _restore_table(tx, archive, entry)

        if fk_disabled:
            await tx.set_foreign_key_checks(True)
            fk_disabled = False

        summary.migrated_options = await migrate_legacy_options(tx)
        summary.imported_templates = await import_legacy_templates(tx, archive)
    finally:
        if fk_disabled:
            try:
                await tx.set_foreign_key_checks(True)
            except Exception as e:
                logger.warning("Could not re-enable foreign key checks: %s", e)

    return summary


# ============================================================================
# Orchestrator
# ============================================================================


async def _rollback(tx: DatabaseTransaction, cause: BaseException) -> None:
    try:
        await tx.rollback()
    except Exception as e:
        raise TransactionError(
            f"rollback after failed restore ({cause}) failed: {e}"
        ) from e


async def restore_archive(adapter: DatabaseClient, source: ArchiveSource) -> RestoreSummary:
    """Replace the contents of every table present in *source*.

    Args:
        adapter: Target database client.
        source: Archive bytes, path, or binary file object.

    Returns:
        Per-table counts plus the legacy upgrades that were applied.

    Raises:
        ArchiveFormatError: If *source* is not a zip file (nothing touched).
        DecodeError: If a table payload is malformed.
        SchemaIntrospectionError: If a target table cannot be introspected.
        RowInsertError: If a row insert fails for any reason other than a
            unique-key conflict.
        TransactionError: If begin, commit or rollback fails.
    """
    with open_archive(source) as archive:
        entries = scan_table_entries(archive)
        logger.info(
            "Restoring %d table(s) from archive: %s",
            len(entries), ", ".join(t for t in BACKUP_TABLE_NAMES if t in entries),
        )

        try:
            tx = await adapter.begin()
        except Exception as e:
            raise TransactionError(f"begin restore transaction failed: {e}") from e

        try:
            summary = await _import_all(tx, archive, entries)
        except BaseException as e:
            await _rollback(tx, e)
            raise

        try:
            await tx.commit()
        except Exception as e:
            raise TransactionError(f"commit restore transaction failed: {e}") from e

    logger.info(
        "Restore committed: %d row(s) inserted, %d duplicate(s) skipped",
        summary.inserted_count, summary.duplicate_count,
    )
    return summary
