"""Storage layer: schema reconciliation, content queries and synchronization.

This module provides:
- ContentSchema: SQLAlchemy tables derived from the content type configuration
- SchemaReconciler: additive repair of the live schema
- ContentQueryBuilder: filtered, paginated content queries
- TaxonomySynchronizer, RelationSynchronizer: diff-and-apply join tables
- ContentLifecycle: save, change and delete of content records

ContentStorage (storage.repository) combines them behind one facade.
"""

from contentstore.storage.content import Content
from contentstore.storage.fields import (
    BASE_COLUMNS,
    FieldType,
    FieldTypeRegistry,
    build_default_registry,
    default_registry,
)
from contentstore.storage.gateway import DatabaseGateway, GatewayStats, TableMetadata
from contentstore.storage.introspection import SchemaIntrospector
from contentstore.storage.lifecycle import ContentLifecycle
from contentstore.storage.query import ContentQueryBuilder, Pager, parse_shortcut
from contentstore.storage.reconciler import ChangeReport, ReconcileState, SchemaReconciler
from contentstore.storage.relations import RelationSynchronizer
from contentstore.storage.schema import ContentSchema
from contentstore.storage.taxonomy import SyncStats, TaxonomySynchronizer

__all__ = [
    # Records
    "Content",
    # Field types
    "BASE_COLUMNS",
    "FieldType",
    "FieldTypeRegistry",
    "build_default_registry",
    "default_registry",
    # Database access
    "DatabaseGateway",
    "GatewayStats",
    "TableMetadata",
    # Schema
    "ChangeReport",
    "ContentSchema",
    "ReconcileState",
    "SchemaIntrospector",
    "SchemaReconciler",
    # Content
    "ContentLifecycle",
    "ContentQueryBuilder",
    "Pager",
    "parse_shortcut",
    "RelationSynchronizer",
    "SyncStats",
    "TaxonomySynchronizer",
]
