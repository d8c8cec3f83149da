"""ContentStorage: the public entry point of the storage layer.

Wires the schema, query builder, synchronizers and lifecycle together and
runs every public operation over its own gateway (one connection, one
transaction):

    storage = ContentStorage(manager, config, settings)
    changes = await storage.repair_tables()
    result = await storage.save_content({"title": "Hello"}, "entries")
    records, pager = await storage.get_content("entries", {"page": 2})
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from contentstore.contenttypes.models import ContentType, ContentTypesConfig
from contentstore.core.config import Settings, get_settings
from contentstore.core.connections import ConnectionManager
from contentstore.core.logging import get_logger
from contentstore.core.models.base import Result
from contentstore.storage.content import Content
from contentstore.storage.fields import FieldTypeRegistry
from contentstore.storage.lifecycle import ContentLifecycle
from contentstore.storage.query import ContentQueryBuilder, Pager
from contentstore.storage.reconciler import ChangeReport, SchemaReconciler
from contentstore.storage.relations import RelationSynchronizer
from contentstore.storage.schema import ContentSchema
from contentstore.storage.taxonomy import TaxonomySynchronizer

logger = get_logger(__name__)


class ContentStorage:
    """Facade over the content store for one configuration and database."""

    def __init__(
        self,
        manager: ConnectionManager,
        config: ContentTypesConfig,
        settings: Settings | None = None,
        registry: FieldTypeRegistry | None = None,
    ):
        self.manager = manager
        self.config = config
        self.settings = settings or get_settings()

        self.schema = ContentSchema(config, self.settings.table_prefix, registry)
        self.taxonomy = TaxonomySynchronizer(self.schema)
        self.relations = RelationSynchronizer(self.schema)
        self.query_builder = ContentQueryBuilder(
            self.schema,
            default_page_size=self.settings.default_page_size,
            taxonomy=self.taxonomy,
            relations=self.relations,
        )
        self.lifecycle = ContentLifecycle(
            self.schema,
            taxonomy=self.taxonomy,
            relations=self.relations,
            cascade_delete=self.settings.cascade_delete,
        )

    # =========================================================================
    # Schema
    # =========================================================================

    async def repair_tables(self) -> list[ChangeReport]:
        """Create missing tables and columns; returns the change log."""
        async with self.manager.gateway() as db:
            return await SchemaReconciler(self.schema).reconcile(db)

    async def pending_changes(self) -> list[ChangeReport]:
        """Changes repair_tables() would make, without executing any DDL."""
        async with self.manager.gateway() as db:
            return await SchemaReconciler(self.schema).reconcile(db, dry_run=True)

    async def check_tables_integrity(self) -> bool:
        """True when every declared table and column exists."""
        changes = await self.pending_changes()
        return not any(change.structural for change in changes)

    async def check_user_table_integrity(self) -> bool:
        """True when the users table exists."""
        async with self.manager.gateway() as db:
            tables = await db.introspect_schema(self.schema.prefix)
        return self.schema.users.name in tables

    # =========================================================================
    # Reads
    # =========================================================================

    def get_content_type(self, slug: str | None) -> ContentType | None:
        return self.config.get_content_type(slug)

    async def get_content(
        self,
        slug: str,
        parameters: Mapping[str, Any] | None = None,
        request: Mapping[str, Any] | None = None,
    ) -> tuple[list[Content] | Content | None, Pager | None]:
        async with self.manager.gateway() as db:
            return await self.query_builder.get_content(db, slug, parameters, request)

    async def get_single_content(
        self, slug: str, parameters: Mapping[str, Any] | None = None
    ) -> Content | None:
        async with self.manager.gateway() as db:
            return await self.query_builder.get_single_content(db, slug, parameters)

    def get_empty_content(self, contenttype: str) -> dict[str, Any] | None:
        resolved = self.config.get_content_type(contenttype)
        if resolved is None:
            logger.warning("contenttype_not_found", slug=contenttype)
            return None
        return self.lifecycle.empty(resolved)

    async def get_uri(
        self,
        title: str,
        content_id: int | None = None,
        contenttype: str = "pages",
        full_uri: bool = True,
    ) -> str | None:
        resolved = self.config.get_content_type(contenttype)
        if resolved is None:
            logger.warning("contenttype_not_found", slug=contenttype)
            return None
        async with self.manager.gateway() as db:
            return await self.lifecycle.get_uri(db, title, content_id, resolved, full_uri)

    # =========================================================================
    # Writes
    # =========================================================================

    async def save_content(
        self,
        content: Mapping[str, Any] | Content,
        contenttype: ContentType | str | None = None,
    ) -> Result[int]:
        async with self.manager.gateway() as db:
            return await self.lifecycle.save(db, content, contenttype)

    async def change_content(
        self, contenttype: ContentType | str, content_id: int, column: str, value: Any
    ) -> Result[int]:
        async with self.manager.gateway() as db:
            return await self.lifecycle.change(db, contenttype, content_id, column, value)

    async def delete_content(
        self, contenttype: ContentType | str, content_id: int, cascade: bool | None = None
    ) -> Result[int]:
        async with self.manager.gateway() as db:
            return await self.lifecycle.delete(db, contenttype, content_id, cascade)
