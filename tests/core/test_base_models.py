"""Tests for Result and shared helpers."""

import pytest

from contentstore.core.models.base import ContentStatus, Result, utcnow


class TestResult:
    def test_ok(self):
        result = Result.ok(12)
        assert result.success
        assert result.unwrap() == 12
        assert result.error is None

    def test_fail(self):
        result = Result.fail("no contenttype")
        assert not result.success
        assert result.error == "no contenttype"
        with pytest.raises(ValueError, match="no contenttype"):
            result.unwrap()

    def test_map(self):
        assert Result.ok(2).map(lambda value: value * 3).unwrap() == 6

    def test_map_keeps_failure(self):
        result = Result.fail("broken").map(lambda value: value * 3)
        assert not result.success
        assert result.error == "broken"


def test_utcnow_is_naive_without_microseconds():
    now = utcnow()
    assert now.tzinfo is None
    assert now.microsecond == 0


def test_content_status_values():
    assert ContentStatus.DRAFT.value == "draft"
    assert ContentStatus("published") is ContentStatus.PUBLISHED
