# -*- coding: utf-8 -*-
"""Tests for utils/format.py"""

from utils.format import bold, pagify, style_list


def test_bold():
    assert bold("Name") == "**Name**"


class TestPagify:
    def test_short_text_single_page(self):
        assert list(pagify("Hello World")) == ["Hello World"]

    def test_splits_on_newline(self):
        text = "a" * 15 + "\n" + "b" * 15
        assert list(pagify(text, page_length=20)) == ["a" * 15, "\n" + "b" * 15]

    def test_delimiter_at_position_zero_doesnt_hang(self):
        text = "\n" + "x" * 30
        pages = list(pagify(text, page_length=10))
        assert "".join(pages) == text
        assert all(len(page) <= 10 for page in pages)

    def test_splits_at_page_length_without_delimiter(self):
        assert list(pagify("x" * 25, page_length=10)) == ["x" * 10, "x" * 10, "x" * 5]

    def test_empty_string(self):
        assert list(pagify("")) == [""]


class TestStyleList:
    def test_skips_empty_values(self):
        result = style_list([("Style", "Short"), ("Placeholder", None), ("Max length", 100), ("Empty", "")])
        assert result == "- **Style**: Short\n- **Max length**: 100"

    def test_zero_is_kept(self):
        assert style_list([("Min length", 0)]) == "- **Min length**: 0"
