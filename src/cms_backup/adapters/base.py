"""Database collaborator protocols.

Defines the ``DatabaseClient`` Protocol used by export and the
``DatabaseTransaction`` Protocol used by restore.  All methods are
``async def`` -- the library is async-first.

Restore owns exactly one transaction for its whole run.  Nothing but the
restore orchestrator calls ``commit`` or ``rollback`` on it.

Usage:
    from cms_backup.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.select("posts")
        tx = await client.begin()
        try:
            await tx.delete("posts")
            await tx.insert("posts", {"title": "hello"})
        except Exception:
            await tx.rollback()
            raise
        else:
            await tx.commit()
"""

from typing import Any, Protocol


class DatabaseTransaction(Protocol):
    """One explicit database transaction.

    All statements issued through this object run inside the same
    transaction until ``commit`` or ``rollback`` is called.
    """

    @property
    def supports_deferred_foreign_keys(self) -> bool:
        """Whether foreign-key checking can be suspended for a bulk load.

        Engines that return ``False`` make ``set_foreign_key_checks`` a
        no-op.
        """
        ...

    async def get_column_types(self, table: str) -> dict[str, str]:
        """Introspect the live columns of *table*.

        Returns:
            Dict mapping column name to the engine's type string
            (e.g. ``"VARCHAR(255)"``, ``"DATETIME"``, ``"JSON"``).

        Raises:
            Exception: If the table does not exist or cannot be read.
        """
        ...

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
    ) -> list[dict]:
        """Select rows from *table* inside the transaction.

        Args:
            table: Table name.
            columns: Comma-separated column names or ``"*"``.
            filters: Optional dict of field=value filters (AND).
        """
        ...

    async def insert(self, table: str, data: dict) -> None:
        """Insert one row.

        Raises:
            ConstraintViolation: On a unique or duplicate-key conflict.
                The transaction stays usable.
            Exception: On any other failure.
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any] | None = None) -> None:
        """Delete rows matching *filters*; all rows when *filters* is None."""
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement inside the transaction."""
        ...

    async def set_foreign_key_checks(self, enabled: bool) -> None:
        """Enable or disable foreign-key checking for this transaction."""
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement."""

    @property
    def dialect_name(self) -> str:
        """Engine name recorded in archive manifests (e.g. ``"mysql"``)."""
        ...

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names or ``"*"``.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select("posts", "id, title", order_by="id")
        """
        ...

    async def begin(self) -> DatabaseTransaction:
        """Open a new explicit transaction on a dedicated connection."""
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
