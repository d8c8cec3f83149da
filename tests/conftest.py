"""Shared pytest fixtures for all tests."""

import copy
from typing import Any

import pytest

from contentstore.contenttypes.loader import parse_content_config
from contentstore.contenttypes.models import ContentTypesConfig
from contentstore.core.config import Settings
from contentstore.core.connections import ConnectionConfig, ConnectionManager
from contentstore.storage.gateway import DatabaseGateway
from contentstore.storage.lifecycle import ContentLifecycle
from contentstore.storage.query import ContentQueryBuilder
from contentstore.storage.reconciler import SchemaReconciler
from contentstore.storage.repository import ContentStorage
from contentstore.storage.schema import ContentSchema

PREFIX = "cs_"

CONTENTTYPES: dict[str, Any] = {
    "pages": {
        "name": "Pages",
        "singular_name": "Page",
        "fields": {
            "title": {"type": "text"},
            "slug": {"type": "slug", "uses": "title"},
            "sep": {"type": "divider"},
            "body": {"type": "html"},
            "template": {"type": "templateselect"},
        },
        "taxonomy": ["chapters"],
    },
    "entries": {
        "name": "Entries",
        "singular_name": "Entry",
        "fields": {
            "title": {"type": "text"},
            "slug": {"type": "slug", "uses": "title"},
            "teaser": {"type": "textarea"},
            "body": {"type": "html"},
            "image": {"type": "image"},
            "rating": {"type": "number", "default": 3},
            "datepublish": {"type": "datetime"},
        },
        "taxonomy": ["categories", "tags"],
    },
    "showcases": {
        "name": "Showcases",
        "singular_name": "Showcase",
        "fields": {
            "title": {"type": "text"},
            "subtitle": {"type": "text"},
            "slug": {"type": "slug", "uses": ["title", "subtitle"]},
            "price": {"type": "number"},
        },
        "relations": {"entries": {"multiple": True}},
        "taxonomy": ["tags"],
    },
}

TAXONOMY: dict[str, Any] = {
    "tags": {"name": "Tags", "singular_name": "Tag", "behaves_like": "tags"},
    "categories": {
        "name": "Categories",
        "singular_name": "Category",
        "behaves_like": "categories",
        "options": ["news", "events", "movies"],
    },
    "chapters": {
        "name": "Chapters",
        "singular_name": "Chapter",
        "behaves_like": "grouping",
        "options": {"main": "The main chapter", "meta": "Meta chapter", "other": "Other stuff"},
    },
}


@pytest.fixture
def contenttypes_data() -> dict[str, Any]:
    """Raw contenttypes mapping, safe to modify."""
    return copy.deepcopy(CONTENTTYPES)


@pytest.fixture
def taxonomy_data() -> dict[str, Any]:
    return copy.deepcopy(TAXONOMY)


@pytest.fixture
def content_config() -> ContentTypesConfig:
    """Parsed sample configuration (pages, entries, showcases)."""
    return parse_content_config(CONTENTTYPES, TAXONOMY, source_name="tests").unwrap()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        table_prefix=PREFIX,
        default_page_size=100,
        cascade_delete=False,
    )


@pytest.fixture
def schema(content_config: ContentTypesConfig) -> ContentSchema:
    return ContentSchema(content_config, PREFIX)


@pytest.fixture(scope="function")
async def manager() -> ConnectionManager:
    """Connection manager over a fresh in-memory SQLite database.

    Creates a fresh database for each test function.
    """
    test_manager = ConnectionManager(ConnectionConfig.in_memory())
    await test_manager.initialize()
    yield test_manager
    await test_manager.close()


@pytest.fixture
async def db(manager: ConnectionManager, schema: ContentSchema) -> DatabaseGateway:
    """Gateway over a reconciled schema, open for the whole test."""
    async with manager.gateway() as gateway:
        await SchemaReconciler(schema).reconcile(gateway)
        yield gateway


@pytest.fixture
def lifecycle(schema: ContentSchema) -> ContentLifecycle:
    return ContentLifecycle(schema)


@pytest.fixture
def builder(schema: ContentSchema) -> ContentQueryBuilder:
    return ContentQueryBuilder(schema, default_page_size=100)


@pytest.fixture
async def storage(
    manager: ConnectionManager, content_config: ContentTypesConfig, settings: Settings
) -> ContentStorage:
    """Facade over a repaired database."""
    content_storage = ContentStorage(manager, content_config, settings)
    await content_storage.repair_tables()
    return content_storage
