"""Schema reconciler.

Brings the live database in line with the declared configuration:
- creates the system tables (users, taxonomy, relations) when missing
- creates a base table for every declared content type when missing
- adds every missing column of a declared field

The reconciler is additive only. It never drops or renames a table or a
column; a field removed from the configuration leaves an orphan column.
Running it twice in a row yields no structural change the second time.

Reconciliation walks an explicit state machine:

    UNRECONCILED -> TABLES_CHECKED -> COLUMNS_CHECKED -> DONE

and the list of ChangeReports is the transition log.
"""

from __future__ import annotations

import zlib
from enum import Enum

from pydantic import BaseModel
from sqlalchemy import Column, MetaData, Table, func, select, text
from sqlalchemy.schema import CreateColumn

from contentstore.core.logging import get_logger
from contentstore.core.models.base import ChangeKind
from contentstore.storage.fields import BASE_COLUMN_TYPES
from contentstore.storage.gateway import DatabaseGateway, TableMetadata
from contentstore.storage.introspection import SchemaIntrospector
from contentstore.storage.schema import ContentSchema

logger = get_logger(__name__)


class ReconcileState(str, Enum):
    UNRECONCILED = "unreconciled"
    TABLES_CHECKED = "tables_checked"
    COLUMNS_CHECKED = "columns_checked"
    DONE = "done"


_TRANSITIONS = {
    ReconcileState.UNRECONCILED: ReconcileState.TABLES_CHECKED,
    ReconcileState.TABLES_CHECKED: ReconcileState.COLUMNS_CHECKED,
    ReconcileState.COLUMNS_CHECKED: ReconcileState.DONE,
}


class ChangeReport(BaseModel):
    """One entry of the reconciliation change log."""

    kind: ChangeKind
    table: str
    column: str | None = None
    field_type: str | None = None

    @property
    def structural(self) -> bool:
        """Whether this entry describes (or requires) a schema change."""
        return self.kind != ChangeKind.UNKNOWN_FIELD_TYPE

    @property
    def message(self) -> str:
        if self.kind == ChangeKind.TABLE_CREATED:
            return f"Created table {self.table}."
        if self.kind == ChangeKind.COLUMN_ADDED:
            return f"Added column {self.column} to table {self.table}."
        return (
            f"Type {self.field_type} is not a correct field type for field "
            f"{self.column} in table {self.table}."
        )

    def __str__(self) -> str:
        return self.message


class SchemaReconciler:
    """Diffs declared content types against the live schema and repairs forward."""

    def __init__(self, schema: ContentSchema):
        self.schema = schema
        self.state = ReconcileState.UNRECONCILED
        self.changes: list[ChangeReport] = []

    async def reconcile(
        self,
        db: DatabaseGateway,
        live: TableMetadata | None = None,
        dry_run: bool = False,
    ) -> list[ChangeReport]:
        """Reconcile the schema and return the change log.

        Args:
            db: Gateway used for introspection and DDL
            live: Introspected schema; read from the database when omitted
            dry_run: Report pending changes without executing any DDL

        Returns:
            One ChangeReport per table created, column added or unknown
            field type encountered, in execution order. Unknown field types
            are reported again on every run; a rerun over an unchanged
            configuration reports no structural change.
        """
        self.state = ReconcileState.UNRECONCILED
        self.changes = []

        if not dry_run and db.dialect_name == "postgresql":
            # Serializes concurrent reconciliations of the same prefix
            await db.scalar(select(func.pg_advisory_xact_lock(self._lock_key())))

        if live is None:
            live = await SchemaIntrospector(self.schema.prefix).list_tables(db)
        live = {table: dict(columns) for table, columns in live.items()}

        await self._check_tables(db, live, dry_run)
        self._advance()
        await self._check_columns(db, live, dry_run)
        self._advance()
        self._advance()

        logger.info(
            "schema_reconciled",
            dry_run=dry_run,
            changes=sum(1 for change in self.changes if change.structural),
            diagnostics=sum(1 for change in self.changes if not change.structural),
        )
        return list(self.changes)

    def _advance(self) -> None:
        self.state = _TRANSITIONS[self.state]

    def _lock_key(self) -> int:
        return zlib.crc32(f"contentstore:{self.schema.prefix}".encode())

    def _record(self, change: ChangeReport) -> None:
        self.changes.append(change)
        if change.structural:
            logger.info(change.kind.value, table=change.table, column=change.column)
        else:
            logger.warning(
                change.kind.value,
                table=change.table,
                column=change.column,
                field_type=change.field_type,
            )

    async def _check_tables(self, db: DatabaseGateway, live: TableMetadata, dry_run: bool) -> None:
        for table in self.schema.system_tables:
            if table.name not in live:
                await self._create_table(db, table, live, dry_run)

        for contenttype in self.schema.config.contenttypes.values():
            table_name = self.schema.table_name(contenttype)
            if table_name not in live:
                await self._create_table(db, self.schema.base_table(contenttype), live, dry_run)

    async def _create_table(
        self, db: DatabaseGateway, table: Table, live: TableMetadata, dry_run: bool
    ) -> None:
        if not dry_run:
            await db.create_table(table)
        live[table.name] = {column.name: str(column.type) for column in table.columns}
        self._record(ChangeReport(kind=ChangeKind.TABLE_CREATED, table=table.name))

    async def _check_columns(self, db: DatabaseGateway, live: TableMetadata, dry_run: bool) -> None:
        registry = self.schema.registry

        for contenttype in self.schema.config.contenttypes.values():
            table_name = self.schema.table_name(contenttype)
            existing = live[table_name]

            for field_name, declaration in contenttype.fields.items():
                if field_name in existing or field_name in BASE_COLUMN_TYPES:
                    continue

                field_type = registry.get(declaration.type)
                if field_type is None:
                    self._record(
                        ChangeReport(
                            kind=ChangeKind.UNKNOWN_FIELD_TYPE,
                            table=table_name,
                            column=field_name,
                            field_type=declaration.type,
                        )
                    )
                    continue
                if not field_type.materialized:
                    continue

                column = field_type.column(field_name)
                if not dry_run:
                    await db.execute(text(self._add_column_sql(db, table_name, column)))
                existing[field_name] = str(column.type)
                self._record(
                    ChangeReport(
                        kind=ChangeKind.COLUMN_ADDED,
                        table=table_name,
                        column=field_name,
                        field_type=declaration.type,
                    )
                )

    def _add_column_sql(self, db: DatabaseGateway, table_name: str, column: Column) -> str:
        """ALTER TABLE ... ADD COLUMN with the dialect's own column specification."""
        Table(table_name, MetaData(), column)
        specification = CreateColumn(column).compile(dialect=db.conn.dialect)
        return f"ALTER TABLE {db.quote_identifier(table_name)} ADD COLUMN {specification}"
