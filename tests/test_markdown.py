"""Tests for workstate.docs.markdown module."""

from workstate.docs.markdown import (
    format_item,
    read_fields,
    split_list_value,
    split_numbered_items,
    split_sections,
)


class TestSplitSections:
    """Tests for split_sections()."""

    def test_preamble_drops_title_line(self):
        preamble, sections = split_sections("# Title\n\nIntro text\n\n## One\n\nBody\n")
        assert preamble == "Intro text"
        assert sections[0].title == "One"
        assert sections[0].content == "Body"

    def test_level_three_headings_stay_in_content(self):
        _, sections = split_sections("## One\n\n### Sub\n\ntext\n")
        assert len(sections) == 1
        assert "### Sub" in sections[0].content

    def test_no_sections(self):
        preamble, sections = split_sections("# Title\n\nonly text")
        assert preamble == "only text"
        assert sections == []


class TestSplitNumberedItems:
    """Tests for split_numbered_items()."""

    def test_splits_items_with_field_lines(self):
        items = split_numbered_items("1. First\n   - a: 1\n\n2. Second\n")
        assert [i.title for i in items] == ["First", "Second"]
        assert items[0].field_lines == ["- a: 1"]
        assert items[1].field_lines == []

    def test_text_before_first_item_is_ignored(self):
        items = split_numbered_items("準備中...\n\n1. Only\n")
        assert [i.title for i in items] == ["Only"]

    def test_inline_numbers_do_not_split(self):
        items = split_numbered_items("1. Version 2. release\n")
        assert [i.title for i in items] == ["Version 2. release"]


class TestFields:
    """Tests for read_fields(), split_list_value() and format_item()."""

    def test_read_fields_later_lines_win(self):
        values = read_fields(["- 説明: a", "- 優先度: low", "- 説明: b"], ("- 説明:", "- 優先度:"))
        assert values == {"- 説明:": "b", "- 優先度:": "low"}

    def test_read_fields_ignores_unknown_prefixes(self):
        assert read_fields(["- メモ: x"], ("- 説明:",)) == {}

    def test_split_list_value(self):
        assert split_list_value(" a.py, b.py ,, c.py") == ["a.py", "b.py", "c.py"]
        assert split_list_value("") == []

    def test_format_item(self):
        lines = format_item(2, "検索", [("- 説明:", "全文検索")])
        assert lines == ["2. 検索", "   - 説明: 全文検索", ""]
