"""Table definitions for the content store.

ContentSchema turns a ContentTypesConfig plus a table prefix into
SQLAlchemy Table objects:
- three system tables: users, taxonomy, relations
- one table per content type: base columns + materialized declared fields

The same definitions drive DDL (reconciler) and queries (query builder,
synchronizers, lifecycle), so column types never diverge between them.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Table

from contentstore.contenttypes.models import ContentType, ContentTypesConfig
from contentstore.storage.base import new_metadata
from contentstore.storage.fields import (
    BASE_COLUMN_TYPES,
    FieldType,
    FieldTypeRegistry,
    default_registry,
)

USERS = "users"
TAXONOMY = "taxonomy"
RELATIONS = "relations"


def base_columns() -> list[Column[Any]]:
    """Columns every content table is created with."""
    columns: list[Column[Any]] = [Column("id", Integer, primary_key=True, autoincrement=True)]
    for name, field_type in BASE_COLUMN_TYPES.items():
        if name == "id":
            continue
        columns.append(field_type.column(name))
    return columns


class ContentSchema:
    """SQLAlchemy tables for one configuration and one table prefix."""

    def __init__(
        self,
        config: ContentTypesConfig,
        prefix: str,
        registry: FieldTypeRegistry | None = None,
    ):
        self.config = config
        self.prefix = prefix
        self.registry = registry or default_registry
        self.metadata = new_metadata()

        self.users = Table(
            self.prefix + USERS,
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("username", String(32)),
            Column("password", String(64)),
            Column("email", String(64)),
            Column("lastseen", DateTime),
            Column("lastip", String(32)),
            Column("displayname", String(32)),
            Column("userlevel", String(32)),
            Column("enabled", Boolean),
        )

        self.taxonomy = Table(
            self.prefix + TAXONOMY,
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("content_id", Integer, nullable=False),
            Column("contenttype", String(32), nullable=False),
            Column("taxonomytype", String(32), nullable=False),
            Column("slug", String(64), nullable=False),
            Column("name", String(64), nullable=False, server_default=""),
            Index(
                f"ix_{self.prefix}{TAXONOMY}_content",
                "content_id",
                "contenttype",
                "taxonomytype",
            ),
        )

        self.relations = Table(
            self.prefix + RELATIONS,
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("from_contenttype", String(32), nullable=False),
            Column("from_id", Integer, nullable=False),
            Column("to_contenttype", String(32), nullable=False),
            Column("to_id", Integer, nullable=False),
            Index(
                f"ix_{self.prefix}{RELATIONS}_from",
                "from_id",
                "from_contenttype",
                "to_contenttype",
            ),
        )

        self._content_tables: dict[str, Table] = {}
        for contenttype in config.contenttypes.values():
            self._content_tables[contenttype.slug] = self._build_content_table(contenttype)

    @property
    def system_tables(self) -> list[Table]:
        return [self.users, self.taxonomy, self.relations]

    def table_name(self, contenttype: ContentType) -> str:
        return self.prefix + contenttype.slug

    def content_table(self, contenttype: ContentType) -> Table:
        """Full table of a content type: base columns plus declared fields."""
        return self._content_tables[contenttype.slug]

    def base_table(self, contenttype: ContentType) -> Table:
        """Table with only the base columns, for initial creation.

        Declared fields are added afterwards, one ALTER per column, so a
        fresh table and an outdated one follow the same path.
        """
        return Table(self.table_name(contenttype), new_metadata(), *base_columns())

    def field_type(self, contenttype: ContentType, column: str) -> FieldType | None:
        """Field type driving a column (base column or declared field)."""
        if column in BASE_COLUMN_TYPES:
            return BASE_COLUMN_TYPES[column]
        declaration = contenttype.fields.get(column)
        if declaration is None:
            return None
        return self.registry.get(declaration.type)

    def field_column(self, contenttype: ContentType, field_name: str) -> Column[Any] | None:
        """New, unattached column for a declared field (None when not materialized)."""
        declaration = contenttype.fields[field_name]
        field_type = self.registry.get(declaration.type)
        if field_type is None or not field_type.materialized:
            return None
        return field_type.column(field_name)

    def column_names(self, contenttype: ContentType) -> list[str]:
        return [column.name for column in self.content_table(contenttype).columns]

    def _build_content_table(self, contenttype: ContentType) -> Table:
        columns = base_columns()
        for field_name in contenttype.fields:
            if field_name in BASE_COLUMN_TYPES:
                continue
            column = self.field_column(contenttype, field_name)
            if column is not None:
                columns.append(column)
        return Table(self.table_name(contenttype), self.metadata, *columns)
