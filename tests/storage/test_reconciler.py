"""Tests for schema introspection and reconciliation."""

from sqlalchemy import inspect

from contentstore.contenttypes.loader import parse_content_config
from contentstore.core.connections import ConnectionManager
from contentstore.core.models.base import ChangeKind
from contentstore.storage.gateway import DatabaseGateway
from contentstore.storage.introspection import SchemaIntrospector
from contentstore.storage.reconciler import ChangeReport, ReconcileState, SchemaReconciler
from contentstore.storage.schema import ContentSchema

PREFIX = "cs_"


async def _columns(db: DatabaseGateway, table: str) -> dict[str, dict]:
    def _read(sync_conn):
        return {column["name"]: column for column in inspect(sync_conn).get_columns(table)}

    return await db.conn.run_sync(_read)


class TestFreshDatabase:
    async def test_creates_system_and_content_tables(
        self, manager: ConnectionManager, schema: ContentSchema
    ):
        async with manager.gateway() as db:
            changes = await SchemaReconciler(schema).reconcile(db)
            live = await SchemaIntrospector(PREFIX).list_tables(db)

        created = [c.table for c in changes if c.kind == ChangeKind.TABLE_CREATED]
        assert created == [
            "cs_users",
            "cs_taxonomy",
            "cs_relations",
            "cs_pages",
            "cs_entries",
            "cs_showcases",
        ]
        assert set(live) == set(created)

    async def test_system_table_columns(self, manager: ConnectionManager, schema: ContentSchema):
        async with manager.gateway() as db:
            await SchemaReconciler(schema).reconcile(db)
            live = await SchemaIntrospector(PREFIX).list_tables(db)

        assert list(live["cs_users"]) == [
            "id",
            "username",
            "password",
            "email",
            "lastseen",
            "lastip",
            "displayname",
            "userlevel",
            "enabled",
        ]
        assert list(live["cs_taxonomy"]) == [
            "id",
            "content_id",
            "contenttype",
            "taxonomytype",
            "slug",
            "name",
        ]
        assert list(live["cs_relations"]) == [
            "id",
            "from_contenttype",
            "from_id",
            "to_contenttype",
            "to_id",
        ]

    async def test_declared_fields_added_after_base_columns(
        self, manager: ConnectionManager, schema: ContentSchema
    ):
        async with manager.gateway() as db:
            changes = await SchemaReconciler(schema).reconcile(db)
            live = await SchemaIntrospector(PREFIX).list_tables(db)

        assert list(live["cs_pages"]) == [
            "id",
            "slug",
            "datecreated",
            "datechanged",
            "username",
            "status",
            "title",
            "body",
            "template",
        ]
        added = [(c.table, c.column) for c in changes if c.kind == ChangeKind.COLUMN_ADDED]
        assert ("cs_entries", "rating") in added
        assert ("cs_showcases", "price") in added
        # slug, divider and relation fields have no column
        assert ("cs_pages", "slug") not in added
        assert ("cs_pages", "sep") not in added
        assert "entries" not in live["cs_showcases"]

    async def test_type_mapping(self, manager: ConnectionManager, schema: ContentSchema):
        async with manager.gateway() as db:
            await SchemaReconciler(schema).reconcile(db)
            columns = await _columns(db, "cs_entries")

        assert str(columns["rating"]["type"]) == "NUMERIC(18, 9)"
        assert columns["rating"]["nullable"] is False
        assert columns["rating"]["default"] == "'0'"

        assert str(columns["title"]["type"]) == "VARCHAR(256)"
        assert columns["title"]["nullable"] is False
        assert columns["title"]["default"] == "''"

        assert str(columns["body"]["type"]) == "TEXT"
        assert str(columns["datepublish"]["type"]) == "DATETIME"
        assert columns["datepublish"]["nullable"] is True

    async def test_state_machine_reaches_done(
        self, manager: ConnectionManager, schema: ContentSchema
    ):
        reconciler = SchemaReconciler(schema)
        assert reconciler.state == ReconcileState.UNRECONCILED
        async with manager.gateway() as db:
            await reconciler.reconcile(db)
        assert reconciler.state == ReconcileState.DONE


class TestIdempotence:
    async def test_second_run_reports_nothing(
        self, manager: ConnectionManager, schema: ContentSchema
    ):
        async with manager.gateway() as db:
            first = await SchemaReconciler(schema).reconcile(db)
        async with manager.gateway() as db:
            second = await SchemaReconciler(schema).reconcile(db)
            assert db.stats.ddl == 0

        assert first
        assert second == []


class TestAdditivity:
    async def test_removed_field_leaves_orphan_column(
        self, manager: ConnectionManager, schema: ContentSchema, contenttypes_data, taxonomy_data
    ):
        async with manager.gateway() as db:
            await SchemaReconciler(schema).reconcile(db)

        del contenttypes_data["entries"]["fields"]["body"]
        del contenttypes_data["showcases"]
        config = parse_content_config(contenttypes_data, taxonomy_data).unwrap()

        async with manager.gateway() as db:
            changes = await SchemaReconciler(ContentSchema(config, PREFIX)).reconcile(db)
            live = await SchemaIntrospector(PREFIX).list_tables(db)

        assert changes == []
        assert "body" in live["cs_entries"]
        assert "cs_showcases" in live

    async def test_new_field_is_added_to_existing_table(
        self, manager: ConnectionManager, schema: ContentSchema, contenttypes_data, taxonomy_data
    ):
        async with manager.gateway() as db:
            await SchemaReconciler(schema).reconcile(db)

        contenttypes_data["pages"]["fields"]["subtitle"] = {"type": "text"}
        config = parse_content_config(contenttypes_data, taxonomy_data).unwrap()

        async with manager.gateway() as db:
            changes = await SchemaReconciler(ContentSchema(config, PREFIX)).reconcile(db)
            live = await SchemaIntrospector(PREFIX).list_tables(db)

        assert [str(change) for change in changes] == ["Added column subtitle to table cs_pages."]
        assert "subtitle" in live["cs_pages"]
        assert "title" in live["cs_pages"]


class TestUnknownFieldType:
    async def test_diagnostic_does_not_stop_repair(self, manager: ConnectionManager):
        config = parse_content_config(
            {
                "things": {
                    "name": "Things",
                    "fields": {
                        "weird": {"type": "hologram"},
                        "price": {"type": "number"},
                    },
                }
            }
        ).unwrap()

        async with manager.gateway() as db:
            changes = await SchemaReconciler(ContentSchema(config, PREFIX)).reconcile(db)
            live = await SchemaIntrospector(PREFIX).list_tables(db)

        diagnostics = [change for change in changes if not change.structural]
        assert [str(change) for change in diagnostics] == [
            "Type hologram is not a correct field type for field weird in table cs_things."
        ]
        assert "price" in live["cs_things"]
        assert "weird" not in live["cs_things"]

    async def test_diagnostic_repeats_on_every_run(self, manager: ConnectionManager):
        config = parse_content_config(
            {"things": {"name": "Things", "fields": {"weird": {"type": "blob"}}}}
        ).unwrap()
        schema = ContentSchema(config, PREFIX)

        async with manager.gateway() as db:
            await SchemaReconciler(schema).reconcile(db)
            second = await SchemaReconciler(schema).reconcile(db)

        assert not any(change.structural for change in second)
        assert [change.kind for change in second] == [ChangeKind.UNKNOWN_FIELD_TYPE]


class TestDryRun:
    async def test_reports_without_ddl(self, manager: ConnectionManager, schema: ContentSchema):
        async with manager.gateway() as db:
            changes = await SchemaReconciler(schema).reconcile(db, dry_run=True)
            live = await SchemaIntrospector(PREFIX).list_tables(db)
            assert db.stats.ddl == 0

        assert live == {}
        assert changes[0] == ChangeReport(kind=ChangeKind.TABLE_CREATED, table="cs_users")
        assert any(
            change.kind == ChangeKind.COLUMN_ADDED and change.column == "rating"
            for change in changes
        )


class TestIntrospector:
    async def test_only_prefixed_tables(self, db: DatabaseGateway):
        other = await SchemaIntrospector("other_").list_tables(db)
        assert other == {}

        live = await SchemaIntrospector(PREFIX).list_tables(db)
        assert all(name.startswith(PREFIX) for name in live)


class TestChangeReport:
    def test_messages(self):
        assert str(ChangeReport(kind=ChangeKind.TABLE_CREATED, table="cs_pages")) == (
            "Created table cs_pages."
        )
        report = ChangeReport(kind=ChangeKind.COLUMN_ADDED, table="cs_pages", column="title")
        assert report.message == "Added column title to table cs_pages."
        assert report.structural
