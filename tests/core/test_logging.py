"""Tests for scoped logging context."""

from contentstore.core.logging import current_log_context, get_logger, log_context


class TestLogContext:
    def test_context_is_scoped(self):
        assert current_log_context() == {}
        with log_context(contenttype="entries"):
            assert current_log_context() == {"contenttype": "entries"}
        assert current_log_context() == {}

    def test_nested_contexts_merge(self):
        with log_context(contenttype="entries"):
            with log_context(content_id=4):
                assert current_log_context() == {"contenttype": "entries", "content_id": 4}
            assert current_log_context() == {"contenttype": "entries"}

    def test_inner_value_overrides(self):
        with log_context(contenttype="entries"):
            with log_context(contenttype="pages"):
                assert current_log_context()["contenttype"] == "pages"


def test_get_logger_logs_without_error():
    logger = get_logger(__name__)
    with log_context(contenttype="pages"):
        logger.info("content_saved", content_id=1)
