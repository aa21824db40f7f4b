"""Column metadata of the restore target.

Columns are introspected from the live target database (never from the
archive) and each one is classified into a coercion category from its
engine type string.  The mapping is built once per table per restore run
and never cached across runs, so it always reflects the current schema.

Usage:
    from cms_backup.backup.columns import load_columns, ColumnCategory

    columns = await load_columns(tx, "posts")
    columns["created_at"]   # ColumnCategory.TIME
"""

from enum import Enum

from cms_backup.adapters.base import DatabaseTransaction
from cms_backup.backup.errors import SchemaIntrospectionError


class ColumnCategory(str, Enum):
    """Coercion category of a target column."""

    TIME = "time"
    JSON = "json"
    TEXT = "text"
    OPAQUE = "opaque"


_TIME_MARKERS = ("TIME", "DATE", "YEAR")
_TEXT_MARKERS = ("CHAR", "TEXT", "CLOB", "ENUM", "SET")


def classify_column_type(db_type: str) -> ColumnCategory:
    """Classify an engine type string.

    Examples:
        >>> classify_column_type("datetime(3)")
        <ColumnCategory.TIME: 'time'>
        >>> classify_column_type("JSONB")
        <ColumnCategory.JSON: 'json'>
        >>> classify_column_type("VARCHAR(255)")
        <ColumnCategory.TEXT: 'text'>
        >>> classify_column_type("BIGINT")
        <ColumnCategory.OPAQUE: 'opaque'>
    """
    upper = db_type.strip().upper()
    if any(marker in upper for marker in _TIME_MARKERS):
        return ColumnCategory.TIME
    if "JSON" in upper:
        return ColumnCategory.JSON
    if any(marker in upper for marker in _TEXT_MARKERS):
        return ColumnCategory.TEXT
    return ColumnCategory.OPAQUE


async def load_columns(
    tx: DatabaseTransaction, table: str
) -> dict[str, ColumnCategory]:
    """Load and classify the columns of *table* in the target database.

    Args:
        tx: Open restore transaction.
        table: Canonical table name.

    Returns:
        Dict mapping lower-cased column name to its category.

    Raises:
        SchemaIntrospectionError: If the column definitions cannot be read.
    """
    try:
        column_types = await tx.get_column_types(table)
    except SchemaIntrospectionError:
        raise
    except Exception as e:
        raise SchemaIntrospectionError(
            f"load table columns for {table} failed: {e}", table=table
        ) from e

    columns: dict[str, ColumnCategory] = {}
    for name, db_type in column_types.items():
        key = name.strip().lower()
        if not key:
            continue
        columns[key] = classify_column_type(db_type or "")
    return columns
