"""Database gateway: the narrow interface the storage core talks to.

A DatabaseGateway wraps exactly one SQLAlchemy AsyncConnection that is
already inside a transaction (see ConnectionManager.gateway()). Every
statement is a SQLAlchemy Core construct with bound parameters; the only
raw SQL text is assembled from identifiers quoted by the dialect.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Table, and_, delete, inspect, insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql.base import Executable

from contentstore.core.logging import get_logger

logger = get_logger(__name__)

# table name -> column name -> column type
TableMetadata = dict[str, dict[str, str]]


@dataclass
class GatewayStats:
    """Statements issued through one gateway."""

    queries: int = 0
    writes: int = 0
    ddl: int = 0


class DatabaseGateway:
    """One connection, one transaction, counted statements."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn
        self.stats = GatewayStats()

    @property
    def dialect_name(self) -> str:
        return self.conn.dialect.name

    # =========================================================================
    # Introspection
    # =========================================================================

    async def introspect_schema(self, prefix: str = "") -> TableMetadata:
        """Read every table (and its columns) whose name starts with prefix."""

        def _introspect(sync_conn: Connection) -> TableMetadata:
            inspector = inspect(sync_conn)
            tables: TableMetadata = {}
            for table_name in inspector.get_table_names():
                if not table_name.startswith(prefix):
                    continue
                # Build the column map fully before publishing the table
                columns = {
                    column["name"]: str(column["type"])
                    for column in inspector.get_columns(table_name)
                }
                tables[table_name] = columns
            return tables

        self.stats.queries += 1
        return await self.conn.run_sync(_introspect)

    # =========================================================================
    # Reads
    # =========================================================================

    async def query(self, statement: Executable) -> list[dict[str, Any]]:
        """Run a SELECT and return its rows as dictionaries."""
        self.stats.queries += 1
        result = await self.conn.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    async def scalar(self, statement: Executable) -> Any:
        self.stats.queries += 1
        return await self.conn.scalar(statement)

    # =========================================================================
    # Writes
    # =========================================================================

    async def execute(self, statement: Executable) -> int:
        """Run a statement (usually DDL) and return the affected row count."""
        self.stats.ddl += 1
        result = await self.conn.execute(statement)
        return max(result.rowcount, 0)

    async def create_table(self, table: Table) -> None:
        """CREATE TABLE, guarded against a table created concurrently."""
        self.stats.ddl += 1
        await self.conn.run_sync(table.create, checkfirst=True)
        logger.debug("table_create_issued", table=table.name, dialect=self.dialect_name)

    async def insert(self, table: Table, values: Mapping[str, Any]) -> int:
        """INSERT one row and return its generated primary key."""
        self.stats.writes += 1
        result = await self.conn.execute(insert(table).values(dict(values)))
        return int(result.inserted_primary_key[0])

    async def update(
        self, table: Table, values: Mapping[str, Any], where: Mapping[str, Any]
    ) -> int:
        """UPDATE rows matching all `where` equalities; returns matched rows."""
        self.stats.writes += 1
        statement = update(table).where(_equals(table, where)).values(dict(values))
        result = await self.conn.execute(statement)
        return max(result.rowcount, 0)

    async def delete(self, table: Table, where: Mapping[str, Any]) -> int:
        """DELETE rows matching all `where` equalities."""
        self.stats.writes += 1
        result = await self.conn.execute(delete(table).where(_equals(table, where)))
        return max(result.rowcount, 0)

    # =========================================================================
    # Raw fragments
    # =========================================================================

    def quote_identifier(self, name: str) -> str:
        return self.conn.dialect.identifier_preparer.quote(name)

    async def exists(
        self, table: Table, where: Mapping[str, Any], exclude_id: int | None = None
    ) -> bool:
        """Whether a row matches all `where` equalities (other than row `exclude_id`)."""
        statement = select(table.c.id).where(_equals(table, where))
        if exclude_id is not None:
            statement = statement.where(table.c.id != exclude_id)
        return bool(await self.query(statement.limit(1)))


def _equals(table: Table, where: Mapping[str, Any]) -> Any:
    return and_(*(table.c[key] == value for key, value in where.items()))
