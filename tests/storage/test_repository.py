"""Tests for the ContentStorage facade."""

from contentstore.contenttypes.loader import parse_content_config
from contentstore.contenttypes.models import ContentTypesConfig
from contentstore.core.config import Settings
from contentstore.core.connections import ConnectionManager
from contentstore.storage.content import Content
from contentstore.storage.repository import ContentStorage


class TestIntegrity:
    async def test_before_and_after_repair(
        self, manager: ConnectionManager, content_config: ContentTypesConfig, settings: Settings
    ):
        storage = ContentStorage(manager, content_config, settings)

        assert not await storage.check_tables_integrity()
        assert not await storage.check_user_table_integrity()
        assert await storage.pending_changes()

        changes = await storage.repair_tables()
        assert "Created table cs_users." in [change.message for change in changes]

        assert await storage.check_tables_integrity()
        assert await storage.check_user_table_integrity()
        assert await storage.repair_tables() == []

    async def test_new_field_needs_repair(
        self,
        storage: ContentStorage,
        manager: ConnectionManager,
        settings: Settings,
        contenttypes_data,
        taxonomy_data,
    ):
        contenttypes_data["entries"]["fields"]["subtitle"] = {"type": "text"}
        config = parse_content_config(contenttypes_data, taxonomy_data).unwrap()
        changed = ContentStorage(manager, config, settings)

        assert not await changed.check_tables_integrity()
        messages = [change.message for change in await changed.pending_changes()]
        assert messages == ["Added column subtitle to table cs_entries."]


class TestContentRoundTrip:
    async def test_save_get_change_delete(self, storage: ContentStorage):
        saved = await storage.save_content(
            {"title": "Hello", "taxonomy": {"tags": "one, two"}}, "entries"
        )
        content_id = saved.unwrap()

        record = await storage.get_single_content(f"entry/{content_id}")
        assert isinstance(record, Content)
        assert record.slug == "hello"
        assert record.taxonomy == {"tags": ["one", "two"]}

        assert (await storage.change_content("entries", content_id, "status", "held")).success
        records, pager = await storage.get_content("entries", {"status": "held"})
        assert [r.id for r in records] == [content_id]
        assert pager.count == 1

        assert (await storage.delete_content("entries", content_id)).success
        records, pager = await storage.get_content("entries")
        assert records == []
        assert pager.count == 0

    async def test_each_call_commits(self, storage: ContentStorage):
        await storage.save_content({"title": "First"}, "pages")
        await storage.save_content({"title": "Second"}, "pages")

        records, _ = await storage.get_content("pages")
        assert [r["title"] for r in records] == ["First", "Second"]

    async def test_get_uri(self, storage: ContentStorage):
        assert await storage.get_uri("About us") == "/page/about-us"
        await storage.save_content({"title": "About us"}, "pages")
        assert await storage.get_uri("About us", contenttype="pages") == "/page/about-us-1"


class TestUnknownContentType:
    def test_get_content_type(self, storage: ContentStorage):
        assert storage.get_content_type("entry").slug == "entries"
        assert storage.get_content_type("nothing") is None

    def test_get_empty_content(self, storage: ContentStorage):
        assert storage.get_empty_content("nothing") is None
        assert storage.get_empty_content("entries")["rating"] == 3

    async def test_get_uri(self, storage: ContentStorage):
        assert await storage.get_uri("About", contenttype="nothing") is None

    async def test_get_content(self, storage: ContentStorage):
        assert await storage.get_content("nothing") == (None, None)
