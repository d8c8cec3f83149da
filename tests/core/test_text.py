"""Tests for slug and key helpers."""

from contentstore.core.text import make_key, make_slug, trim_text


class TestMakeSlug:
    def test_lowercases_and_dashes(self):
        assert make_slug("Lorem Ipsum, dolor!") == "lorem-ipsum-dolor"

    def test_folds_accents(self):
        assert make_slug("Café Crème") == "cafe-creme"

    def test_collapses_and_strips_separators(self):
        assert make_slug("  --Hello   World--  ") == "hello-world"

    def test_none_and_empty(self):
        assert make_slug(None) == ""
        assert make_slug("") == ""
        assert make_slug("!!!") == ""

    def test_non_string_input(self):
        assert make_slug(2012) == "2012"


class TestTrimText:
    def test_shorter_text_is_unchanged(self):
        assert trim_text("about", 32) == "about"

    def test_cuts_without_trailing_dash(self):
        assert trim_text("about-us-and-more", 9) == "about-us"


class TestMakeKey:
    def test_length_and_alphabet(self):
        key = make_key(6)
        assert len(key) == 6
        assert key.isalnum()
        assert key == key.lower()

    def test_keys_differ(self):
        assert len({make_key(12) for _ in range(20)}) == 20
