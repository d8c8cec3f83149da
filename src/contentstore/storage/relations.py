"""Relation synchronizer.

Relations are directed edges (from_contenttype, from_id) -> (to_contenttype,
to_id) stored in the relations system table. A relation field is named
after the content type it points to, so the field name is the
to_contenttype of every edge it holds.

Writes use the same diff-and-apply as taxonomy. Reads aggregate the target
ids of each relation field into one column per field through a LEFT JOIN,
grouped by the content row id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import String, and_, cast, distinct, exists, func, literal_column, select
from sqlalchemy.sql import ColumnElement, Select
from sqlalchemy.sql.schema import Table

from contentstore.contenttypes.models import ContentType
from contentstore.core.logging import get_logger
from contentstore.storage.content import Content
from contentstore.storage.filters import Conjunction
from contentstore.storage.gateway import DatabaseGateway
from contentstore.storage.schema import ContentSchema
from contentstore.storage.taxonomy import SyncStats

logger = get_logger(__name__)


def normalize_ids(values: Any) -> list[int]:
    """Desired target ids as unique integers in submission order.

    Strings are split on commas; values that are not integers are skipped.
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    elif not isinstance(values, Iterable):
        values = [values]

    ids: list[int] = []
    for value in values:
        try:
            target_id = int(str(value).strip())
        except ValueError:
            continue
        if target_id not in ids:
            ids.append(target_id)
    return ids


def aggregate_ids(column: ColumnElement[Any], dialect_name: str) -> ColumnElement[Any]:
    """Comma separated distinct values of `column` within a group."""
    if dialect_name in ("sqlite", "mysql", "mariadb"):
        return func.group_concat(distinct(column))
    if dialect_name == "postgresql":
        return func.string_agg(distinct(cast(column, String)), literal_column("','"))
    raise ValueError(f"No id aggregation available for dialect '{dialect_name}'")


class RelationSynchronizer:
    """Diff-and-apply for the relations table, plus the aggregated read path."""

    def __init__(self, schema: ContentSchema):
        self.schema = schema
        self.table = schema.relations

    # =========================================================================
    # Writes
    # =========================================================================

    async def sync(
        self,
        db: DatabaseGateway,
        content_id: int,
        contenttype: ContentType,
        desired: Mapping[str, Any],
    ) -> SyncStats:
        """Converge outgoing edges to `desired` for every relation field given."""
        stats = SyncStats()
        table = self.table

        for field_name, values in desired.items():
            wanted = normalize_ids(values)
            statement = (
                select(table.c.id, table.c.to_id)
                .where(
                    table.c.from_id == content_id,
                    table.c.from_contenttype == contenttype.slug,
                    table.c.to_contenttype == field_name,
                )
                .order_by(table.c.id)
            )

            stored: dict[int, int] = {}
            to_delete: list[int] = []
            for row in await db.query(statement):
                if row["to_id"] in stored:
                    to_delete.append(row["id"])
                else:
                    stored[row["to_id"]] = row["id"]

            for target_id in wanted:
                if target_id in stored:
                    continue
                await db.insert(
                    table,
                    {
                        "from_contenttype": contenttype.slug,
                        "from_id": content_id,
                        "to_contenttype": field_name,
                        "to_id": target_id,
                    },
                )
                stats.inserted += 1

            to_delete.extend(row_id for target, row_id in stored.items() if target not in wanted)
            for row_id in to_delete:
                await db.delete(table, {"id": row_id})
                stats.deleted += 1

        if stats.inserted or stats.deleted:
            logger.debug(
                "relations_synced",
                contenttype=contenttype.slug,
                content_id=content_id,
                inserted=stats.inserted,
                deleted=stats.deleted,
            )
        return stats

    async def delete_for(
        self, db: DatabaseGateway, content_id: int, contenttype: ContentType
    ) -> int:
        """Remove every edge starting or ending at one record."""
        outgoing = await db.delete(
            self.table, {"from_contenttype": contenttype.slug, "from_id": content_id}
        )
        incoming = await db.delete(
            self.table, {"to_contenttype": contenttype.slug, "to_id": content_id}
        )
        return outgoing + incoming

    # =========================================================================
    # Reads
    # =========================================================================

    def load(
        self, statement: Select[Any], table: Table, contenttype: ContentType, dialect_name: str
    ) -> Select[Any]:
        """Add one aggregated column per relation field to a content SELECT.

        Each field gets its own aliased LEFT JOIN on the relations table;
        the statement is then grouped by the content row id.
        """
        fields = contenttype.relation_fields
        if not fields:
            return statement

        joined: Any = table
        columns = []
        for field_name in fields:
            alias = self.table.alias(f"rel_{field_name}")
            joined = joined.outerjoin(
                alias,
                and_(
                    alias.c.from_id == table.c.id,
                    alias.c.from_contenttype == contenttype.slug,
                    alias.c.to_contenttype == field_name,
                ),
            )
            columns.append(
                aggregate_ids(alias.c.to_id, dialect_name).label(self.column_label(field_name))
            )
        return statement.add_columns(*columns).select_from(joined).group_by(table.c.id)

    @staticmethod
    def column_label(field_name: str) -> str:
        return f"relation__{field_name}"

    def hydrate(self, record: Content, row: dict[str, Any]) -> None:
        """Move aggregated relation columns from a row into the record."""
        for field_name in record.contenttype.relation_fields:
            raw = row.pop(self.column_label(field_name), None)
            ids = normalize_ids(raw) if raw else []
            record.relations[field_name] = sorted(ids)

    def filter(
        self,
        table: Table,
        contenttype: ContentType,
        field_name: str,
        ids: list[int],
        conjunction: Conjunction,
    ) -> ColumnElement[bool]:
        """Predicate selecting content rows related to the given target ids.

        OR: related to any of the ids (one IN subquery).
        AND: related to every id (one EXISTS per id).
        """
        relations = self.table
        edge = and_(
            relations.c.from_id == table.c.id,
            relations.c.from_contenttype == contenttype.slug,
            relations.c.to_contenttype == field_name,
        )

        if conjunction == Conjunction.OR or len(ids) == 1:
            subquery = select(relations.c.from_id).where(
                relations.c.from_contenttype == contenttype.slug,
                relations.c.to_contenttype == field_name,
                relations.c.to_id.in_(ids),
            )
            return table.c.id.in_(subquery)

        return and_(
            *(exists().where(edge, relations.c.to_id == target_id) for target_id in ids)
        )
