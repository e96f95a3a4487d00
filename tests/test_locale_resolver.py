"""
Tests for the Locale Resolver module.
"""

import pytest
from podscribe.locale_resolver import (
    CJK_MAX_LENGTH, DEFAULT_MAX_LENGTH, DEFAULT_REGIONS,
    default_max_length, is_cjk, language_code, locale_info, resolve_locale,
)


class TestResolveLocale:
    """Test loose tag → locale identifier mapping."""

    def test_language_and_region(self):
        assert resolve_locale("zh-tw") == "zh_TW"

    def test_underscore_separator(self):
        assert resolve_locale("pt_br") == "pt_BR"

    def test_default_region(self):
        assert resolve_locale("en") == "en_US"
        assert resolve_locale("ja") == "ja_JP"

    def test_unknown_language_kept_bare(self):
        assert resolve_locale("xx") == "xx"

    def test_uppercase_input(self):
        assert resolve_locale("EN-gb") == "en_GB"

    def test_surrounding_whitespace(self):
        assert resolve_locale("  fr ") == "fr_FR"

    def test_three_part_tag_passed_through(self):
        assert resolve_locale("zh-Hant-TW") == "zh-Hant-TW"

    def test_empty_tag_never_raises(self):
        assert resolve_locale("") == ""
        assert resolve_locale(None) == ""

    @pytest.mark.parametrize("tag", ["zh-tw", "en", "ja", "xx", "pt_br", "ko-kr"])
    def test_idempotent(self, tag):
        once = resolve_locale(tag)
        assert resolve_locale(once) == once

    def test_region_table_size(self):
        assert len(DEFAULT_REGIONS) >= 30


class TestDerivedFacts:
    """Test CJK detection and default subtitle lengths."""

    @pytest.mark.parametrize("tag", ["zh", "zh-cn", "ja", "ko_KR"])
    def test_cjk_tags(self, tag):
        assert is_cjk(tag)
        assert default_max_length(tag) == CJK_MAX_LENGTH

    @pytest.mark.parametrize("tag", ["en", "fr-ca", "th", "xx"])
    def test_non_cjk_tags(self, tag):
        assert not is_cjk(tag)
        assert default_max_length(tag) == DEFAULT_MAX_LENGTH

    def test_language_code(self):
        assert language_code("zh_TW") == "zh"
        assert language_code("EN-us") == "en"

    def test_locale_info(self):
        info = locale_info("zh-tw")
        assert info.identifier == "zh_TW"
        assert info.language == "zh"
        assert info.is_cjk
        assert info.default_max_length == 18
        assert str(info) == "zh_TW"

    def test_locale_info_non_cjk(self):
        info = locale_info("en")
        assert info.identifier == "en_US"
        assert not info.is_cjk
        assert info.default_max_length == 40
