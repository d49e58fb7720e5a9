"""
Tests for the language -> column table and the TTL cache.
"""

from __future__ import annotations

import pytest

from message_geo.cache import TTLCache
from message_geo.errors import ConfigurationError
from message_geo.languages import DEFAULT_LANGUAGE_COLUMNS, LanguageColumns, parse_language_columns


class TestLanguageColumns:
    def test_default_table(self):
        columns = LanguageColumns()
        assert columns.columns_for({"en", "ar"}) == ["ar_name", "name"]

    def test_shared_column_listed_once(self):
        columns = LanguageColumns({"en": "name", "en-gb": "name"})
        assert columns.columns_for({"en", "en-gb"}) == ["name"]

    def test_unmapped_language(self):
        with pytest.raises(ConfigurationError, match="xx"):
            LanguageColumns().columns_for({"en", "xx"})

    @pytest.mark.parametrize("column", ["name; DROP TABLE x", "Name", "1name", ""])
    def test_rejects_non_identifier_columns(self, column):
        with pytest.raises(ConfigurationError):
            LanguageColumns({"en": column})

    def test_rejects_empty_table(self):
        with pytest.raises(ConfigurationError):
            LanguageColumns({})


class TestParseLanguageColumns:
    def test_blank_uses_defaults(self):
        assert parse_language_columns("  ") == DEFAULT_LANGUAGE_COLUMNS

    def test_pairs(self):
        assert parse_language_columns("EN:name, ar:ar_name,") == {"en": "name", "ar": "ar_name"}

    def test_malformed_pair(self):
        with pytest.raises(ConfigurationError):
            parse_language_columns("en=name")

    def test_from_setting_validates(self):
        with pytest.raises(ConfigurationError):
            LanguageColumns.from_setting("en:name,ar:bad column")


class TestTTLCache:
    def test_expiry(self):
        now = [0.0]
        cache = TTLCache(10, clock=lambda: now[0])
        cache.set("a", 1)
        now[0] = 9.9
        assert cache.get("a") == 1
        now[0] = 10.0
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_overwrite_resets_ttl(self):
        now = [0.0]
        cache = TTLCache(10, clock=lambda: now[0])
        cache.set("a", 1)
        now[0] = 8
        cache.set("a", 2)
        now[0] = 15
        assert cache.get("a") == 2

    def test_invalidate(self):
        cache = TTLCache(10)
        cache.set("a", 1)
        cache.invalidate("a")
        assert cache.get("a") is None

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLCache(0)
