"""Taxonomy synchronizer.

Keeps the taxonomy join table equal to the taxonomy assignments of a
content record, writing only the difference:

    to_insert = desired - current
    to_delete = current - desired

Rows are deleted by id. Reading is batched: one query attaches the
taxonomy of a whole page of records.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select

from contentstore.contenttypes.models import ContentType
from contentstore.core.logging import get_logger
from contentstore.storage.content import Content
from contentstore.storage.gateway import DatabaseGateway
from contentstore.storage.schema import ContentSchema

logger = get_logger(__name__)


@dataclass
class SyncStats:
    """Rows written by one sync call."""

    inserted: int = 0
    deleted: int = 0

    def __iadd__(self, other: SyncStats) -> SyncStats:
        self.inserted += other.inserted
        self.deleted += other.deleted
        return self


def normalize_slugs(values: Any) -> list[str]:
    """Desired values as unique, non-empty strings in submission order.

    A plain string is treated as a comma separated list.
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    elif not isinstance(values, Iterable):
        values = [values]

    slugs: list[str] = []
    for value in values:
        slug = str(value).strip()
        if slug and slug not in slugs:
            slugs.append(slug)
    return slugs


class TaxonomySynchronizer:
    """Diff-and-apply for the taxonomy join table."""

    def __init__(self, schema: ContentSchema):
        self.schema = schema
        self.table = schema.taxonomy

    async def current(
        self, db: DatabaseGateway, content_id: int, contenttype: ContentType, taxonomytype: str
    ) -> list[dict[str, Any]]:
        table = self.table
        statement = (
            select(table.c.id, table.c.slug)
            .where(
                table.c.content_id == content_id,
                table.c.contenttype == contenttype.slug,
                table.c.taxonomytype == taxonomytype,
            )
            .order_by(table.c.id)
        )
        return await db.query(statement)

    async def sync(
        self,
        db: DatabaseGateway,
        content_id: int,
        contenttype: ContentType,
        desired: Mapping[str, Any],
    ) -> SyncStats:
        """Converge stored taxonomy rows to `desired` for every taxonomy type given.

        Taxonomy types absent from `desired` are left untouched.
        """
        stats = SyncStats()

        for taxonomytype, values in desired.items():
            wanted = normalize_slugs(values)
            rows = await self.current(db, content_id, contenttype, taxonomytype)

            stored: dict[str, int] = {}
            to_delete: list[int] = []
            for row in rows:
                if row["slug"] in stored:
                    # Duplicate rows are surplus; the sync heals them
                    to_delete.append(row["id"])
                else:
                    stored[row["slug"]] = row["id"]

            taxonomy = self.schema.config.taxonomy.get(taxonomytype)
            for slug in wanted:
                if slug in stored:
                    continue
                await db.insert(
                    self.table,
                    {
                        "content_id": content_id,
                        "contenttype": contenttype.slug,
                        "taxonomytype": taxonomytype,
                        "slug": slug,
                        "name": taxonomy.option_label(slug) if taxonomy else slug,
                    },
                )
                stats.inserted += 1

            to_delete.extend(row_id for slug, row_id in stored.items() if slug not in wanted)
            for row_id in to_delete:
                await db.delete(self.table, {"id": row_id})
                stats.deleted += 1

        if stats.inserted or stats.deleted:
            logger.debug(
                "taxonomy_synced",
                contenttype=contenttype.slug,
                content_id=content_id,
                inserted=stats.inserted,
                deleted=stats.deleted,
            )
        return stats

    async def attach(
        self, db: DatabaseGateway, records: list[Content], contenttype: ContentType
    ) -> None:
        """Attach taxonomy to a batch of records of one content type (one query)."""
        by_id = {record.id: record for record in records if record.id is not None}
        if not by_id or not contenttype.taxonomy:
            return

        table = self.table
        statement = (
            select(table.c.content_id, table.c.taxonomytype, table.c.slug)
            .where(
                table.c.content_id.in_(list(by_id)),
                table.c.contenttype == contenttype.slug,
                table.c.taxonomytype.in_(contenttype.taxonomy),
            )
            .order_by(table.c.id)
        )
        taxonomy_types = self.schema.config.get_taxonomy_types(contenttype)
        for row in await db.query(statement):
            record = by_id.get(row["content_id"])
            if record is not None:
                record.set_taxonomy(taxonomy_types[row["taxonomytype"]], row["slug"])

    async def delete_for(
        self, db: DatabaseGateway, content_id: int, contenttype: ContentType
    ) -> int:
        """Remove every taxonomy row of one record."""
        return await db.delete(
            self.table, {"content_id": content_id, "contenttype": contenttype.slug}
        )
