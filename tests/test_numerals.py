"""Tests for Chinese numeral parsing."""

import pytest

from doc_truyen.text.numerals import format_chapter_number, to_integer


class TestToInteger:
    """Tests for to_integer()."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2", 2),
            ("十二", 12),
            ("三十一", 31),
            ("一百零五", 105),
            ("十", 10),
            ("二十", 20),
            ("一千二百三十四", 1234),
            ("两百", 200),
        ],
    )
    def test_known_values(self, text, expected):
        assert to_integer(text) == expected

    def test_empty_string_is_none(self):
        assert to_integer("") is None
        assert to_integer("   ") is None

    def test_noise_without_numeral_is_none(self):
        """Characters that are not numerals total zero and give None."""
        assert to_integer("章节") is None

    def test_zero_is_a_number(self):
        assert to_integer("零") == 0

    def test_section_multiplier(self):
        assert to_integer("一万") == 10_000
        assert to_integer("三万五千") == 35_000
        assert to_integer("十万") == 100_000

    def test_formal_digits(self):
        assert to_integer("壹佰零伍") == 105

    def test_arabic_with_leading_zeros(self):
        assert to_integer("007") == 7


class TestFormatChapterNumber:
    """Tests for format_chapter_number()."""

    def test_chinese_numeral_rendered_as_digits(self):
        assert format_chapter_number("三十一") == "31"

    def test_unparseable_kept_raw(self):
        assert format_chapter_number("章") == "章"
