"""Database adapters package.

Provides the ``DatabaseClient`` / ``DatabaseTransaction`` Protocols and the
SQLAlchemy-based ``AsyncSqlAdapter``.

Usage:
    from cms_backup.adapters import DatabaseClient, AsyncSqlAdapter
"""

from cms_backup.adapters.base import DatabaseClient, DatabaseTransaction
from cms_backup.adapters.sql import (
    AsyncSqlAdapter,
    AsyncSqlTransaction,
    is_duplicate_key_error,
    normalize_database_url,
)

__all__ = [
    "DatabaseClient",
    "DatabaseTransaction",
    "AsyncSqlAdapter",
    "AsyncSqlTransaction",
    "is_duplicate_key_error",
    "normalize_database_url",
]
