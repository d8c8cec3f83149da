"""Schema introspector: the live tables and columns under the table prefix."""

from __future__ import annotations

from contentstore.core.logging import get_logger
from contentstore.storage.gateway import DatabaseGateway, TableMetadata

logger = get_logger(__name__)


class SchemaIntrospector:
    """Reads live table metadata for every table carrying the prefix.

    The result is never cached: the schema may change between two
    reconciliation runs of the same process.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix

    async def list_tables(self, db: DatabaseGateway) -> TableMetadata:
        """Return {table name: {column name: column type}}.

        Connectivity and permission errors propagate; a table is either
        present with all its columns or absent.
        """
        tables = await db.introspect_schema(self.prefix)
        logger.debug("schema_introspected", prefix=self.prefix, tables=len(tables))
        return tables
