"""Content record lifecycle: save, change, delete, and new-record helpers.

Every write returns a Result. Configuration problems (no content type,
unknown column, missing record) are failed results; database errors
propagate from the gateway unchanged.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import Table

from contentstore.contenttypes.models import ContentType
from contentstore.core.logging import get_logger, log_context
from contentstore.core.models.base import ContentStatus, Result, utcnow
from contentstore.core.text import make_key, make_slug, trim_text
from contentstore.storage.content import Content
from contentstore.storage.fields import BASE_COLUMNS
from contentstore.storage.gateway import DatabaseGateway
from contentstore.storage.relations import RelationSynchronizer
from contentstore.storage.schema import ContentSchema
from contentstore.storage.taxonomy import SyncStats, TaxonomySynchronizer

logger = get_logger(__name__)

DATE_SUFFIX = "-dateformatted"
TIME_SUFFIX = "-timeformatted"
# e.g. 'Wednesday, 15 August 2012 - 14:30'
COMPOUND_DATE_FORMAT = "%A, %d %B %Y - %H:%M"
DEFAULT_TIME = "00:00"

TAXONOMY_KEY = "taxonomy"
RELATIONS_KEY = "relations"

UNIQUE_SLUG_ATTEMPTS = 10


def parse_compound_date(date_text: Any, time_text: Any = None) -> datetime | None:
    """Combine a formatted date and time into one timestamp.

    Returns None when the pair cannot be parsed.
    """
    if not date_text or not str(date_text).strip():
        return None
    time_part = str(time_text).strip() if time_text else DEFAULT_TIME
    try:
        return datetime.strptime(f"{str(date_text).strip()} - {time_part}", COMPOUND_DATE_FORMAT)
    except ValueError:
        return None


class ContentLifecycle:
    """Writes content records and keeps their taxonomy and relations in sync."""

    def __init__(
        self,
        schema: ContentSchema,
        taxonomy: TaxonomySynchronizer | None = None,
        relations: RelationSynchronizer | None = None,
        cascade_delete: bool = False,
    ):
        self.schema = schema
        self.taxonomy = taxonomy or TaxonomySynchronizer(schema)
        self.relations = relations or RelationSynchronizer(schema)
        self.cascade_delete = cascade_delete

    def resolve_contenttype(self, contenttype: ContentType | str | None) -> ContentType | None:
        if isinstance(contenttype, ContentType):
            return contenttype
        return self.schema.config.get_content_type(contenttype)

    def whitelist(self, contenttype: ContentType) -> set[str]:
        """Keys a submitted record may carry: table columns plus taxonomy and relations."""
        return set(self.schema.column_names(contenttype)) | {TAXONOMY_KEY, RELATIONS_KEY}

    # =========================================================================
    # Save
    # =========================================================================

    async def save(
        self,
        db: DatabaseGateway,
        content: Mapping[str, Any] | Content,
        contenttype: ContentType | str | None = None,
    ) -> Result[int]:
        """Insert (no id) or update (id present) one record.

        Returns:
            Result with the id of the saved record
        """
        if isinstance(content, Content):
            data = content.to_dict()
            contenttype = contenttype or content.contenttype
        else:
            data = dict(content)
            contenttype = contenttype or data.get("contenttype")

        resolved = self.resolve_contenttype(contenttype)
        if resolved is None:
            return Result.fail(
                "Contenttype is required for 'save', and could not be determined "
                f"from the record (got {contenttype!r})"
            )

        with log_context(contenttype=resolved.slug):
            content_id: int | None = None
            raw_id = data.get("id")
            if raw_id not in (None, ""):
                try:
                    content_id = int(str(raw_id).strip())
                except ValueError:
                    return Result.fail(f"Invalid id {raw_id!r} for {resolved.singular_name}")

            values = self.prepare(resolved, data)
            taxonomy = values.pop(TAXONOMY_KEY, None)
            relations = values.pop(RELATIONS_KEY, None)
            values.pop("id", None)

            table = self.schema.content_table(resolved)
            now = utcnow()
            values["datechanged"] = now

            if content_id is None:
                if values.get("datecreated") is None:
                    values["datecreated"] = now
                if not values.get("status"):
                    values["status"] = ContentStatus.DRAFT.value
                content_id = await db.insert(table, values)
                created = True
            else:
                values.pop("datecreated", None)
                if not await db.update(table, values, {"id": content_id}):
                    return Result.fail(
                        f"No {resolved.singular_name} with id {content_id} to update"
                    )
                created = False

            synced = SyncStats()
            if isinstance(taxonomy, Mapping):
                synced += await self.taxonomy.sync(
                    db,
                    content_id,
                    resolved,
                    {key: value for key, value in taxonomy.items() if key in resolved.taxonomy},
                )
            if isinstance(relations, Mapping):
                synced += await self.relations.sync(
                    db,
                    content_id,
                    resolved,
                    {
                        key: value
                        for key, value in relations.items()
                        if key in resolved.relation_fields
                    },
                )

            logger.info(
                "content_saved",
                content_id=content_id,
                created=created,
                links_inserted=synced.inserted,
                links_deleted=synced.deleted,
            )
            return Result.ok(content_id)

    def prepare(self, contenttype: ContentType, data: Mapping[str, Any]) -> dict[str, Any]:
        """Normalize a submitted record into storable column values.

        Merges compound date inputs, derives the slug, drops keys outside
        the whitelist and converts each value per its field type.
        """
        values = self._merge_compound_dates(dict(data))

        if not str(values.get("slug") or "").strip():
            slug = self._derive_slug(contenttype, values)
            if slug:
                values["slug"] = slug

        allowed = self.whitelist(contenttype)
        dropped = sorted(key for key in values if key not in allowed)
        if dropped:
            logger.debug("content_keys_dropped", keys=dropped)

        prepared: dict[str, Any] = {}
        for key, value in values.items():
            if key not in allowed:
                continue
            if key in (TAXONOMY_KEY, RELATIONS_KEY, "id"):
                prepared[key] = value
                continue
            field_type = self.schema.field_type(contenttype, key)
            prepared[key] = field_type.to_storage(value) if field_type else value
        return prepared

    def _merge_compound_dates(self, values: dict[str, Any]) -> dict[str, Any]:
        for key in [key for key in values if key.endswith(DATE_SUFFIX)]:
            field_name = key[: -len(DATE_SUFFIX)]
            date_text = values.pop(key)
            time_text = values.pop(field_name + TIME_SUFFIX, None)
            values[field_name] = parse_compound_date(date_text, time_text)
            if values[field_name] is None and date_text:
                logger.debug("compound_date_unparsed", field=field_name, value=date_text)
        return values

    def _derive_slug(self, contenttype: ContentType, values: Mapping[str, Any]) -> str:
        for declaration in contenttype.fields.values():
            if declaration.type != "slug" or not declaration.uses_fields:
                continue
            source = " ".join(
                str(values.get(name) or "").strip() for name in declaration.uses_fields
            )
            return make_slug(source)
        return ""

    # =========================================================================
    # Change / delete
    # =========================================================================

    async def change(
        self,
        db: DatabaseGateway,
        contenttype: ContentType | str,
        content_id: int,
        column: str,
        value: Any,
    ) -> Result[int]:
        """Update a single column of one record."""
        resolved = self.resolve_contenttype(contenttype)
        if resolved is None:
            return Result.fail(f"Unknown contenttype {contenttype!r}")

        if column == "id" or column not in self.schema.column_names(resolved):
            return Result.fail(f"Column {column!r} cannot be changed on {resolved.slug}")

        field_type = self.schema.field_type(resolved, column)
        values = {column: field_type.to_storage(value) if field_type else value}
        if column != "datechanged":
            values["datechanged"] = utcnow()

        with log_context(contenttype=resolved.slug):
            table = self.schema.content_table(resolved)
            if not await db.update(table, values, {"id": content_id}):
                return Result.fail(f"No {resolved.singular_name} with id {content_id}")
            logger.info("content_changed", content_id=content_id, column=column)
        return Result.ok(content_id)

    async def delete(
        self,
        db: DatabaseGateway,
        contenttype: ContentType | str,
        content_id: int,
        cascade: bool | None = None,
    ) -> Result[int]:
        """Delete one record.

        Only the base row is removed unless cascading is enabled, in which
        case the record's taxonomy rows and every relation starting or
        ending at it are removed too.

        Returns:
            Result with the number of rows removed from the content table
        """
        resolved = self.resolve_contenttype(contenttype)
        if resolved is None:
            return Result.fail(f"Unknown contenttype {contenttype!r}")
        if cascade is None:
            cascade = self.cascade_delete

        with log_context(contenttype=resolved.slug):
            table = self.schema.content_table(resolved)
            deleted = await db.delete(table, {"id": content_id})
            if not deleted:
                return Result.fail(f"No {resolved.singular_name} with id {content_id}")

            if cascade:
                taxonomy_rows = await self.taxonomy.delete_for(db, content_id, resolved)
                relation_rows = await self.relations.delete_for(db, content_id, resolved)
                logger.info(
                    "content_deleted",
                    content_id=content_id,
                    taxonomy_rows=taxonomy_rows,
                    relation_rows=relation_rows,
                )
            else:
                logger.info("content_deleted", content_id=content_id)
        return Result.ok(deleted)

    # =========================================================================
    # New-record helpers
    # =========================================================================

    def empty(self, contenttype: ContentType) -> dict[str, Any]:
        """Template for a new record: empty base columns plus field defaults."""
        values: dict[str, Any] = {column: "" for column in BASE_COLUMNS}
        for field_name, declaration in contenttype.fields.items():
            if field_name in values:
                continue
            values[field_name] = "" if declaration.default is None else declaration.default
        values["contenttype"] = contenttype.slug
        return values

    async def get_uri(
        self,
        db: DatabaseGateway,
        title: str,
        content_id: int | None,
        contenttype: ContentType,
        full_uri: bool = True,
    ) -> str:
        """Unique slug for a title within the content type's table.

        Tries the plain slug, then '-1' to '-10' suffixes, then falls back
        to a shortened slug with a random key.
        """
        table = self.schema.content_table(contenttype)
        base = make_slug(title) or contenttype.singular_slug

        slug = None
        candidates = [base] + [f"{base}-{number}" for number in range(1, UNIQUE_SLUG_ATTEMPTS + 1)]
        for candidate in candidates:
            if not await self._slug_taken(db, table, candidate, content_id):
                slug = candidate
                break
        if slug is None:
            slug = f"{trim_text(base, 32)}-{make_key(6)}"

        if full_uri:
            return f"/{contenttype.singular_slug}/{slug}"
        return slug

    async def _slug_taken(
        self, db: DatabaseGateway, table: Table, slug: str, content_id: int | None
    ) -> bool:
        return await db.exists(table, {"slug": slug}, exclude_id=content_id)
